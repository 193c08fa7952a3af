"""nestrace summary -- counts, token usage and tool parity for a trace."""

from __future__ import annotations

import click

from nestrace.cli.formatting import format_summary


@click.command()
@click.argument("path", type=click.Path(dir_okay=False))
@click.option("--plain", is_flag=True, help="Print the plain-text summary instead of tables.")
@click.pass_context
def summary(ctx: click.Context, path: str, plain: bool) -> None:
    """Summarise the trace file PATH."""
    from nestrace.cli import _trace_session
    from nestrace.reporting import build_summary

    with _trace_session(ctx, path) as (events, console):
        result = build_summary(events)
        if plain:
            console.print(str(result), markup=False, highlight=False)
        else:
            format_summary(result, console)

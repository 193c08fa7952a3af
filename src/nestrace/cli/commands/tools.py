"""nestrace tools -- tool-call attribution table."""

from __future__ import annotations

import click

from nestrace.cli.formatting import format_tools


@click.command()
@click.argument("path", type=click.Path(dir_okay=False))
@click.pass_context
def tools(ctx: click.Context, path: str) -> None:
    """List tool calls requested in trace file PATH and where they came from."""
    from nestrace.cli import _trace_session

    with _trace_session(ctx, path) as (events, console):
        format_tools(events, console)

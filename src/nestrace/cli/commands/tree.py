"""nestrace tree -- run hierarchy with events attached."""

from __future__ import annotations

import click

from nestrace.cli.formatting import format_tree


@click.command()
@click.argument("path", type=click.Path(dir_okay=False))
@click.option("--runs-only", is_flag=True, help="Hide individual events, show runs only.")
@click.pass_context
def tree(ctx: click.Context, path: str, runs_only: bool) -> None:
    """Show the run tree reconstructed from the trace file PATH."""
    from nestrace.cli import _trace_session
    from nestrace.reporting import build_run_tree

    with _trace_session(ctx, path) as (events, console):
        format_tree(build_run_tree(events), console, show_events=not runs_only)

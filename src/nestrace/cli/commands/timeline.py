"""nestrace timeline -- events in chronological order."""

from __future__ import annotations

import click

from nestrace.cli.formatting import format_timeline
from nestrace.models.events import EventKind

_KIND_CHOICES = [k.value for k in EventKind]


@click.command()
@click.argument("path", type=click.Path(dir_okay=False))
@click.option(
    "--kind",
    "kinds",
    multiple=True,
    type=click.Choice(_KIND_CHOICES, case_sensitive=False),
    help="Only show events of this kind (repeatable).",
)
@click.pass_context
def timeline(ctx: click.Context, path: str, kinds: tuple[str, ...]) -> None:
    """Show the events of trace file PATH on a timeline."""
    from nestrace.cli import _trace_session

    with _trace_session(ctx, path) as (events, console):
        if kinds:
            wanted = {EventKind(k.lower()) for k in kinds}
            events = [e for e in events if e.kind in wanted]
        format_timeline(events, console)

"""nestrace CLI -- terminal views over recorded JSONL traces.

This module is NEVER imported from nestrace/__init__.py.
It is only loaded via the ``nestrace`` entry point defined in pyproject.toml.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

import click

from nestrace.cli.formatting import format_error, get_console

if TYPE_CHECKING:
    from collections.abc import Iterator

    from rich.console import Console

    from nestrace.models.events import CapturedEvent


@click.group()
@click.option(
    "--strict",
    is_flag=True,
    envvar="NESTRACE_STRICT",
    help="Fail on malformed trace lines instead of skipping them.",
)
@click.pass_context
def cli(ctx: click.Context, strict: bool) -> None:
    """nestrace: inspect hierarchical run traces."""
    ctx.ensure_object(dict)
    ctx.obj["strict"] = strict


@contextmanager
def _trace_session(ctx: click.Context, path: str) -> Iterator[tuple[list[CapturedEvent], Console]]:
    """Load a trace file, yield (events, console), and format failures as CLI errors."""
    from nestrace.reader import load_trace

    console = get_console()
    try:
        events = load_trace(path, strict=ctx.obj["strict"])
        yield events, console
    except SystemExit:
        raise
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None


# Register subcommands after cli group is defined
from nestrace.cli.commands.summary import summary  # noqa: E402
from nestrace.cli.commands.timeline import timeline  # noqa: E402
from nestrace.cli.commands.tools import tools  # noqa: E402
from nestrace.cli.commands.tree import tree  # noqa: E402

cli.add_command(summary)
cli.add_command(tree)
cli.add_command(timeline)
cli.add_command(tools)

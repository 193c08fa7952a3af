"""Rich formatting helpers for the nestrace CLI.

Provides functions that render trace data for terminal display.
Rich auto-detects TTY and degrades gracefully when piped (no ANSI codes).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from nestrace.models.events import EventKind
from nestrace.reporting import tool_execution_events

if TYPE_CHECKING:
    from nestrace.models.events import CapturedEvent
    from nestrace.reporting import ExecutionSummary, RunNode

_KIND_ICONS = {
    EventKind.PHASE_START: "[cyan]>[/cyan]",
    EventKind.PHASE_END: "[green]✓[/green]",
    EventKind.PHASE_ERROR: "[bold red]✗[/bold red]",
    EventKind.LLM_END: "[blue]◆[/blue]",
    EventKind.TOOL_REQUESTED: "[magenta]→[/magenta]",
    EventKind.TOOL_EXECUTED: "[bright_magenta]⚙[/bright_magenta]",
    EventKind.CUSTOM: "[yellow]●[/yellow]",
}


def get_console() -> Console:
    """Create a Rich Console that auto-detects TTY for graceful pipe degradation."""
    return Console(stderr=False)


def format_summary(summary: ExecutionSummary, console: Console) -> None:
    """Display an execution summary."""
    if summary.total_events == 0:
        console.print("[dim]No events.[/dim]")
        return

    parity = summary.parity
    usage = summary.usage
    console.print(f"Events:  [bold]{summary.total_events}[/bold]")
    console.print(
        f"Tokens:  [green]{usage.total_tokens}[/green] "
        f"({usage.input_tokens} in, {usage.output_tokens} out) "
        f"over {summary.llm_calls} model call(s), "
        f"avg {summary.average_tokens_per_call:.1f}/call"
    )
    parity_label = "[green]balanced[/green]" if parity.balanced else "[red]UNBALANCED[/red]"
    console.print(
        f"Tools:   {parity.requested} requested, {parity.executed} executed ({parity_label})"
    )
    if summary.incomplete_runs:
        console.print(f"[yellow]Incomplete runs: {summary.incomplete_runs}[/yellow]")

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Phase", style="cyan")
    table.add_column("Events", justify="right")
    for phase, count in summary.events_by_phase.items():
        table.add_row(escape(phase), str(count))
    console.print()
    console.print(table)

    if summary.tokens_by_model:
        models = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
        models.add_column("Model", style="blue")
        models.add_column("Input", justify="right")
        models.add_column("Output", justify="right")
        models.add_column("Total", justify="right", style="green")
        for name, model_usage in summary.tokens_by_model.items():
            models.add_row(
                escape(name),
                str(model_usage.input_tokens),
                str(model_usage.output_tokens),
                str(model_usage.total_tokens),
            )
        console.print()
        console.print(models)

    if parity.unmatched_requests:
        console.print(f"[red]Never executed:[/red] {escape(', '.join(parity.unmatched_requests))}")
    if parity.unmatched_executions:
        console.print(f"[red]Never requested:[/red] {escape(', '.join(parity.unmatched_executions))}")

    if summary.errors:
        console.print()
        console.print("[bold red]Errors[/bold red]")
        for error in summary.errors:
            console.print(f"  {escape(error)}")


def _event_label(event: CapturedEvent) -> str:
    icon = _KIND_ICONS.get(event.kind, "-")
    return f"{icon} [dim]{event.kind.value}[/dim] {escape(event.message)}"


def _add_branch(parent: Tree, node: RunNode, *, show_events: bool) -> None:
    count = len(node.events)
    style = "bold" if node.is_semantic else "dim"
    label = (
        f"[{style}]{escape(node.name)}[/{style}] "
        f"[dim]({node.run_id[:8]}) {count} event{'s' if count != 1 else ''}[/dim]"
    )
    branch = parent.add(label)
    if show_events:
        for event in node.events:
            branch.add(_event_label(event))
    for child in node.children:
        _add_branch(branch, child, show_events=show_events)


def format_tree(roots: list[RunNode], console: Console, *, show_events: bool = True) -> None:
    """Display the run hierarchy with events attached to each run."""
    if not roots:
        console.print("[dim]No runs.[/dim]")
        return
    tree = Tree("[bold]trace[/bold]")
    for root in roots:
        _add_branch(tree, root, show_events=show_events)
    console.print(tree)


def format_timeline(events: list[CapturedEvent], console: Console) -> None:
    """Display events chronologically with offsets from the first one."""
    if not events:
        console.print("[dim]No events.[/dim]")
        return

    start = min(e.timestamp for e in events)
    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("+ms", justify="right", style="dim")
    table.add_column("Kind", style="cyan")
    table.add_column("Path")
    table.add_column("Message")

    for event in sorted(events, key=lambda e: e.timestamp):
        offset = (event.timestamp - start).total_seconds() * 1000.0
        path = " > ".join(event.execution_path) or event.node_name
        table.add_row(
            f"{offset:.0f}",
            event.kind.value,
            "  " * event.level + escape(path),
            escape(event.message),
        )
    console.print(table)


def format_tools(events: list[CapturedEvent], console: Console) -> None:
    """Display requested tool calls, their attribution and whether they ran."""
    requests = [e for e in events if e.kind is EventKind.TOOL_REQUESTED]
    if not requests:
        console.print("[dim]No tool calls.[/dim]")
        return

    executions = {
        e.metadata.get("tool_call_id"): e
        for e in tool_execution_events(events)
        if e.metadata.get("tool_call_id")
    }

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Tool", style="magenta")
    table.add_column("Node")
    table.add_column("Master", style="dim")
    table.add_column("Subgraph", style="dim")
    table.add_column("Call ID", style="yellow")
    table.add_column("Result")

    for event in requests:
        meta = event.metadata
        call_id = meta.get("tool_call_id")
        execution = executions.get(call_id) if call_id else None
        if execution is None:
            result = "[dim]-[/dim]"
        elif execution.metadata.get("success"):
            duration = execution.metadata.get("duration_ms")
            result = f"[green]ok[/green] {duration:.0f}ms" if duration is not None else "[green]ok[/green]"
        else:
            result = "[red]failed[/red]"
        table.add_row(
            escape(str(meta.get("tool_name", ""))),
            escape(str(meta.get("current_node") or "unknown")),
            escape(str(meta.get("master_node") or "")),
            escape(str(meta.get("subgraph_node") or "direct")),
            escape(str(call_id or "")),
            result,
        )
    console.print(table)


def format_error(message: str, console: Console) -> None:
    """Display an error message."""
    console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)

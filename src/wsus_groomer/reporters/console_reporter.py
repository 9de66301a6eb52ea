"""Rich console run summary."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from wsus_groomer.models import DecisionKind, RunReport

KIND_STYLES = {
    DecisionKind.DELETE: "bold red",
    DecisionKind.DECLINE_ARCH: "yellow",
    DecisionKind.DECLINE_PREVIEW: "yellow",
    DecisionKind.DECLINE_BETA: "yellow",
    DecisionKind.DECLINE_LANGUAGE: "yellow",
    DecisionKind.DECLINE_SUPERSEDED: "cyan",
    DecisionKind.DECLINE_EXPIRED: "cyan",
    DecisionKind.APPROVE: "green",
    DecisionKind.APPROVE_WITH_LICENSE: "green",
}


def generate(report: RunReport, output_dir: str, verbose: bool = False) -> str:
    """Display the run report on the console using Rich.

    Args:
        report: The run report to display.
        output_dir: Unused for console output, kept for interface consistency.
        verbose: Also list every action taken.

    Returns:
        Empty string (console output has no file path).
    """
    con = Console()

    con.print()
    title = "wsus-groomer - Run Summary"
    if report.dry_run:
        title += " [yellow](dry-run, nothing changed)[/yellow]"
    con.print(f"[bold]{title}[/bold]")
    con.print(f"Server: {report.server}")
    if report.run_end:
        con.print(f"Run: {report.run_start.isoformat()} to {report.run_end.isoformat()}")
    con.print()

    summary_table = Table(title="Actions by Decision")
    summary_table.add_column("Decision", style="bold")
    summary_table.add_column("Count", justify="right")

    for kind in DecisionKind:
        if kind in (DecisionKind.SKIP, DecisionKind.DEFER):
            continue
        count = report.summary.get(kind.value, 0)
        if count:
            summary_table.add_row(kind.value, str(count), style=KIND_STYLES.get(kind, ""))

    failed = report.summary.get("failed", 0)
    summary_table.add_row("failed", str(failed), style="bold magenta" if failed else "dim")
    con.print(summary_table)
    con.print()

    if verbose and report.actions:
        actions_table = Table(title="Actions")
        actions_table.add_column("Phase", width=8)
        actions_table.add_column("Decision", width=24)
        actions_table.add_column("Update", width=70)
        actions_table.add_column("Result", width=10)
        for action in report.actions:
            result = "[green]ok[/green]" if action.success else "[bold magenta]failed[/bold magenta]"
            actions_table.add_row(
                action.phase.value,
                action.decision.label(),
                action.title[:70],
                result,
            )
        con.print(actions_table)
        con.print()

    for action in report.failures:
        con.print(f"  [bold magenta]FAILED[/bold magenta] {action.decision.label()} {action.title}")
        con.print(f"    Update: {action.update_id}")
        con.print(f"    Error: {action.error}")
    if report.failures:
        con.print()

    if report.aborted:
        con.print(f"[bold red]Run aborted: {report.error_message}[/bold red]")
        con.print()

    return ""

# deploy_orchestrator/cli/utils/output.py
"""Output formatting utilities"""

from typing import List, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ...constants import DeploymentStatus, EMOJI_ARROW, EMOJI_ERROR, EMOJI_SUCCESS, EMOJI_WARNING
from ...models.deployment import DeploymentRecord
from ...models.release import ReleaseInfo
from ...models.result import ApprovalOutcome, EventOutcome

console = Console()

STATUS_STYLES = {
    DeploymentStatus.PENDING_APPROVAL.value: "yellow",
    DeploymentStatus.APPROVED.value: "cyan",
    DeploymentStatus.QUEUED.value: "cyan",
    DeploymentStatus.RUNNING.value: "blue",
    DeploymentStatus.SUCCESS.value: "green",
    DeploymentStatus.FAILED.value: "red",
    DeploymentStatus.REJECTED.value: "magenta",
    DeploymentStatus.EXPIRED.value: "dim",
}


def print_error(message: str) -> None:
    console.print(f"[red]{EMOJI_ERROR} {escape(message)}[/red]")


def styled_status(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def _timestamp(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "-"


def format_record(record: DeploymentRecord, show_output: bool = True) -> None:
    """Format and display one deployment record"""
    lines = [
        f"[bold]ID:[/bold] {record.id}",
        f"[bold]App:[/bold] {record.app_name} ({record.app_key})",
        f"[bold]Trigger:[/bold] {record.trigger_name} {escape(f'[{record.trigger_type}]')}",
        f"[bold]Strategy:[/bold] {record.strategy}",
        f"[bold]Status:[/bold] {styled_status(record.status)}",
        f"[bold]Ref:[/bold] {record.trigger_ref or '-'}",
        f"[bold]Commit:[/bold] {record.short_commit_sha or '-'}",
        f"[bold]Author:[/bold] {escape(record.author or '-')}",
        f"[bold]Created:[/bold] {_timestamp(record.created_at)}",
    ]

    if record.expires_at and record.is_pending_approval:
        lines.append(f"[bold]Expires:[/bold] {_timestamp(record.expires_at)}")
    if record.approved_by:
        lines.append(f"[bold]Approved by:[/bold] {record.approved_by} at {_timestamp(record.approved_at)}")
    if record.rejected_by:
        lines.append(f"[bold]Rejected by:[/bold] {record.rejected_by} ({escape(record.rejection_reason or '-')})")
    if record.release_name:
        lines.append(f"[bold]Release:[/bold] {record.release_name}")
    if record.rollback_target:
        lines.append(f"[bold]Rollback target:[/bold] {record.rollback_target}")
    if record.completed_at:
        lines.append(f"[bold]Duration:[/bold] {record.duration_for_humans}")
    if record.exit_code is not None:
        lines.append(f"[bold]Exit code:[/bold] {record.exit_code}")

    if show_output and record.output:
        lines.append("")
        lines.append("[bold]Output:[/bold]")
        lines.append(escape(record.output.rstrip()))

    border = STATUS_STYLES.get(record.status, "white")
    console.print(Panel("\n".join(lines), title="Deployment", border_style=border))


def format_records_table(records: List[DeploymentRecord], title: Optional[str] = None) -> None:
    """Format and display deployment records as a table"""
    if not records:
        console.print("[yellow]No deployments found[/yellow]")
        return

    table = Table(title=title, box=box.SIMPLE)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("App")
    table.add_column("Trigger")
    table.add_column("Commit", style="dim")
    table.add_column("Status")
    table.add_column("Author")
    table.add_column("Created", style="yellow")

    for record in records:
        table.add_row(
            record.id,
            record.app_key,
            record.trigger_name,
            record.short_commit_sha or "-",
            styled_status(record.status),
            record.author or "-",
            _timestamp(record.created_at),
        )

    console.print(table)


def format_releases_table(app_key: str, releases: List[ReleaseInfo]) -> None:
    """Format and display releases of an app"""
    if not releases:
        console.print(f"[yellow]No releases found for {app_key}[/yellow]")
        return

    table = Table(title=f"Releases of {app_key}", box=box.SIMPLE)
    table.add_column("", no_wrap=True)
    table.add_column("Release", style="cyan", no_wrap=True)
    table.add_column("Commit", style="dim")
    table.add_column("Message")
    table.add_column("Size", justify="right")
    table.add_column("Created", style="yellow")

    for release in releases:
        table.add_row(
            f"[green]{EMOJI_SUCCESS}[/green]" if release.is_active else "",
            release.name,
            (release.commit_sha or "-")[:7],
            escape(release.message.splitlines()[0]) if release.message else "",
            release.size_for_humans if release.size_bytes is not None else "-",
            _timestamp(release.created_at),
        )

    console.print(table)


def format_event_outcomes(outcomes: List[EventOutcome]) -> None:
    """Format and display what an inbound event produced"""
    if not outcomes:
        console.print("[yellow]No matching triggers[/yellow]")
        return

    for outcome in outcomes:
        if outcome.is_created:
            created = outcome.created
            console.print(
                f"[green]{EMOJI_SUCCESS}[/green] {outcome.app_key}:{outcome.trigger_name} "
                f"{EMOJI_ARROW} {created.record.id} {styled_status(created.record.status)}"
            )
            if created.approval_token:
                console.print(f"  [bold]Approval token:[/bold] {created.approval_token}")
        else:
            console.print(
                f"[yellow]{EMOJI_WARNING}[/yellow] {outcome.app_key}:{outcome.trigger_name} "
                f"skipped ({outcome.skipped_reason}, blocking {outcome.blocking_id})"
            )


def format_approval_outcome(outcome: ApprovalOutcome) -> None:
    """Format and display an approve or reject result"""
    if outcome.ok:
        console.print(
            f"[green]{EMOJI_SUCCESS}[/green] {outcome.message} "
            f"(deployment {outcome.deployment_id}, status {styled_status(outcome.status)})"
        )
    else:
        print_error(f"{outcome.message} [{outcome.error}]")

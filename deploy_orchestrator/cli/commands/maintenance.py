"""Housekeeping commands"""

import click

from ..decorators import with_orchestrator, run_command
from ..utils.output import console
from ...constants import DEFAULT_RECORD_RETENTION_DAYS


@click.command()
@click.pass_context
@with_orchestrator
def expire(ctx, orchestrator):
    """Expire pending deployments past their approval window"""
    expired = run_command(orchestrator, orchestrator.expire_stale())
    if not expired:
        console.print("[dim]Nothing to expire[/dim]")
        return

    for record in expired:
        console.print(f"[yellow]Expired[/yellow] {record.id} ({record.app_key}:{record.trigger_name})")


@click.command()
@click.option('--days', type=int, default=DEFAULT_RECORD_RETENTION_DAYS, show_default=True,
              help='Delete finished records older than this')
@click.option('--releases', 'with_releases', is_flag=True, help='Also prune old release directories')
@click.option('--rescue', is_flag=True, help='Also fail deployments stuck in running')
@click.option('--dry-run', is_flag=True, help='Show what would be deleted')
@click.pass_context
@with_orchestrator
def cleanup(ctx, days, with_releases, rescue, dry_run, orchestrator):
    """Delete old deployment records

    Examples:

        deploy-orchestrator cleanup --days 30 --dry-run

        deploy-orchestrator cleanup --releases --rescue
    """
    async def _cleanup():
        rescued = await orchestrator.rescue_stuck() if rescue and not dry_run else []
        result = await orchestrator.cleanup_records(days=days, dry_run=dry_run)
        pruned = await orchestrator.cleanup_releases() if with_releases and not dry_run else {}
        return rescued, result, pruned

    rescued, result, pruned = run_command(orchestrator, _cleanup())

    for record in rescued:
        console.print(f"[red]Rescued[/red] {record.id} ({record.app_key}:{record.trigger_name})")

    verb = "Would delete" if result.dry_run else "Deleted"
    console.print(f"{verb} {result.count} record(s) older than {days} days")

    for app_key, names in pruned.items():
        for name in names:
            console.print(f"[dim]Removed release {app_key}/{name}[/dim]")

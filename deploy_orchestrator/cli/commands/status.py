"""Deployment status commands"""

import click

from ..decorators import with_orchestrator, run_command
from ..utils.output import console, format_record, format_records_table


@click.command()
@click.argument('deployment_id')
@click.option('--output', type=click.Choice(['panel', 'json']), default='panel', help='Output format')
@click.pass_context
@with_orchestrator
def status(ctx, deployment_id, output, orchestrator):
    """Show one deployment

    Examples:

        deploy-orchestrator status 4b0c...

        deploy-orchestrator status 4b0c... --output json
    """
    if output == 'json':
        console.print_json(data=run_command(orchestrator, orchestrator.status(deployment_id)))
        return

    format_record(run_command(orchestrator, orchestrator.get_deployment(deployment_id)))


@click.command()
@click.option('--app', 'app_key', help='Only this application')
@click.pass_context
@with_orchestrator
def active(ctx, app_key, orchestrator):
    """List deployments that are pending, queued or running"""
    records = run_command(orchestrator, orchestrator.active(app_key))
    format_records_table(records, title="Active Deployments")


@click.command()
@click.option('--app', 'app_key', help='Only this application')
@click.option('--limit', type=int, default=20, show_default=True, help='Number of deployments to show')
@click.pass_context
@with_orchestrator
def history(ctx, app_key, limit, orchestrator):
    """List recent deployments, newest first"""
    records = run_command(orchestrator, orchestrator.recent(app_key, limit=limit))
    format_records_table(records, title=f"Recent Deployments (Latest {limit})")

"""Approval commands"""

import sys

import click

from ..decorators import with_orchestrator, run_command
from ..utils.output import format_approval_outcome, format_records_table


@click.command()
@click.argument('token')
@click.option('--by', 'user', help='Approver identity')
@click.pass_context
@with_orchestrator
def approve(ctx, token, user, orchestrator):
    """Approve a pending deployment and run it

    Examples:

        deploy-orchestrator approve 3fK9... --by alice
    """
    async def _approve():
        outcome = await orchestrator.approve(token, user=user or "cli")
        await orchestrator.join()
        return outcome

    outcome = run_command(orchestrator, _approve())
    format_approval_outcome(outcome)
    if not outcome.ok:
        sys.exit(1)


@click.command()
@click.argument('token')
@click.option('--reason', help='Rejection reason')
@click.option('--by', 'user', help='Rejecter identity')
@click.pass_context
@with_orchestrator
def reject(ctx, token, reason, user, orchestrator):
    """Reject a pending deployment"""
    outcome = run_command(orchestrator, orchestrator.reject(token, reason=reason, user=user or "cli"))
    format_approval_outcome(outcome)
    if not outcome.ok:
        sys.exit(1)


@click.command()
@click.option('--app', 'app_key', help='Only this application')
@click.pass_context
@with_orchestrator
def pending(ctx, app_key, orchestrator):
    """List deployments waiting for approval"""
    records = run_command(orchestrator, orchestrator.pending(app_key))
    format_records_table(records, title="Pending Approval")

"""Webhook replay command"""

import sys

import click

from ..decorators import with_orchestrator, run_command
from ..utils.output import format_event_outcomes


@click.command()
@click.option('--event', 'event_type', required=True, help='GitHub event type (push, release)')
@click.option('--payload', type=click.File('rb'), required=True, help='JSON payload file, - for stdin')
@click.option('--delivery-id', help='Delivery id used to drop re-deliveries')
@click.option('--signature', help='X-Hub-Signature-256 header value')
@click.pass_context
@with_orchestrator
def webhook(ctx, event_type, payload, delivery_id, signature, orchestrator):
    """Process a GitHub webhook payload

    Deployments that do not need approval run before the command returns;
    the approval token of every pending deployment is printed once.

    Examples:

        deploy-orchestrator webhook --event push --payload push.json

        cat release.json | deploy-orchestrator webhook --event release --payload -
    """
    body = payload.read()

    async def _webhook():
        outcomes = await orchestrator.handle_github(event_type, body, signature=signature, delivery_id=delivery_id)
        await orchestrator.join()
        return outcomes

    outcomes = run_command(orchestrator, _webhook())
    format_event_outcomes(outcomes)

    if any(o.skipped_reason == "conflict" for o in outcomes):
        sys.exit(1)

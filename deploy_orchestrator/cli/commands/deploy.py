"""Manual deployment, rollback and cancel commands"""

import sys

import click

from ..decorators import with_orchestrator, run_command
from ..utils.output import console, format_record
from ...constants import DeploymentStatus


async def _run_to_completion(orchestrator, created):
    await orchestrator.join()
    return await orchestrator.get_deployment(created.record.id)


@click.command()
@click.argument('app_key')
@click.option('-t', '--trigger', 'trigger_name', required=True, help='Trigger name')
@click.option('--ref', help='Branch or tag (default: the trigger branch)')
@click.option('--sha', 'commit_sha', help='Commit to deploy (default: HEAD)')
@click.pass_context
@with_orchestrator
def trigger(ctx, app_key, trigger_name, ref, commit_sha, orchestrator):
    """Run a deployment for APP_KEY right away

    The deployment is queued without approval and the command waits for it
    to finish. The exit status is 1 when the deployment failed.

    Examples:

        deploy-orchestrator trigger my-app --trigger production

        deploy-orchestrator trigger my-app -t staging --ref develop
    """
    async def _trigger():
        created = await orchestrator.create_manual(app_key, trigger_name, ref=ref, commit_sha=commit_sha, author="cli")
        return await _run_to_completion(orchestrator, created)

    record = run_command(orchestrator, _trigger())
    format_record(record)
    if record.status != DeploymentStatus.SUCCESS.value:
        sys.exit(1)


@click.command()
@click.argument('app_key')
@click.option('--release', 'release_name', help='Release to activate (advanced strategy)')
@click.option('--steps', type=int, default=1, show_default=True, help='How many releases or commits to go back')
@click.pass_context
@with_orchestrator
def rollback(ctx, app_key, release_name, steps, orchestrator):
    """Roll APP_KEY back to an earlier release

    Advanced apps re-activate an existing release directory; simple apps run
    the rollback story against ``HEAD~STEPS`` or the named release.

    Examples:

        deploy-orchestrator rollback my-app

        deploy-orchestrator rollback my-app --release 20250101_120000_abc1234
    """
    async def _rollback():
        created = await orchestrator.rollback(app_key, release=release_name, steps=steps, author="cli")
        return await _run_to_completion(orchestrator, created)

    record = run_command(orchestrator, _rollback())
    format_record(record)
    if record.status != DeploymentStatus.SUCCESS.value:
        sys.exit(1)


@click.command()
@click.argument('deployment_id')
@click.option('--reason', help='Why the deployment is cancelled')
@click.option('--by', 'actor', default='operator', show_default=True, help='Who cancels')
@click.pass_context
@with_orchestrator
def cancel(ctx, deployment_id, reason, actor, orchestrator):
    """Force an active deployment to failed"""
    record = run_command(orchestrator, orchestrator.cancel(deployment_id, reason=reason, actor=actor))
    console.print(f"[yellow]Deployment {record.id} cancelled[/yellow]")
    format_record(record, show_output=ctx.obj.verbose)

"""Release listing command"""

import click

from ..decorators import with_orchestrator, run_command
from ..utils.output import console, format_releases_table


@click.command()
@click.argument('app_key')
@click.option('--output', type=click.Choice(['table', 'json']), default='table', help='Output format')
@click.pass_context
@with_orchestrator
def releases(ctx, app_key, output, orchestrator):
    """List releases of APP_KEY, newest first

    Advanced apps show their release directories with the active one
    marked; simple apps show the recent commit log of the target.
    """
    infos = run_command(orchestrator, orchestrator.list_releases(app_key))

    if output == 'json':
        console.print_json(data=[info.to_dict() for info in infos])
        return

    format_releases_table(app_key, infos)

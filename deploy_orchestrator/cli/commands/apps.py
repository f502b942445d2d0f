"""Application listing and configuration check commands"""

import click
from rich import box
from rich.table import Table

from ..decorators import with_orchestrator
from ..utils.output import console
from ...constants import EMOJI_SUCCESS


@click.command()
@click.option('--output', type=click.Choice(['table', 'json']), default='table', help='Output format')
@click.pass_context
@with_orchestrator
def apps(ctx, output, orchestrator):
    """List configured applications and their triggers

    Examples:

        deploy-orchestrator apps

        deploy-orchestrator apps --output json
    """
    registry = orchestrator.registry

    if output == 'json':
        console.print_json(data={app.key: app.to_dict() for app in registry.apps})
        return

    if not len(registry):
        console.print("[yellow]No applications configured[/yellow]")
        return

    table = Table(title="Applications", box=box.SIMPLE)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Strategy")
    table.add_column("Path", style="dim")
    table.add_column("Triggers")

    for app in registry.apps:
        triggers = []
        for t in app.triggers:
            source = t.branch if t.on == "push" else t.tag_pattern
            approval = " [yellow](approval)[/yellow]" if t.requires_approval else ""
            triggers.append(f"{t.name}: {t.on} {source or '*'}{approval}")

        table.add_row(app.key, app.name, app.strategy, app.path, "\n".join(triggers) or "-")

    console.print(table)


@click.command()
@click.pass_context
@with_orchestrator
def check(ctx, orchestrator):
    """Validate the configuration file

    Every application definition is validated on load; an invalid one
    aborts with the collected errors.
    """
    count = len(orchestrator.registry)
    console.print(f"[green]{EMOJI_SUCCESS}[/green] Configuration is valid ({count} application(s))")

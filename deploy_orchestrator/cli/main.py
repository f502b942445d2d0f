# deploy_orchestrator/cli/main.py
"""Main CLI entry point for deploy-orchestrator"""

import sys
import logging
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler

from ..constants import APP_NAME, LOG_FORMAT
from ..api.orchestrator import Orchestrator

# Import all commands
from .commands import (
    apps,
    deploy,
    approval,
    status,
    releases,
    webhook,
    maintenance,
)

console = Console()


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """Setup logging configuration

    Args:
        verbose: Enable verbose output (INFO level)
        debug: Enable debug output (DEBUG level)
    """
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    # Configure rich handler
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            RichHandler(
                console=console,
                show_time=debug,
                show_path=debug,
                rich_tracebacks=True,
                tracebacks_suppress=[click]
            )
        ]
    )

    # Adjust third-party loggers
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiofiles").setLevel(logging.WARNING)


class Context:
    """CLI context object with lazy orchestrator initialization

    The configuration file is only read when a command actually needs the
    orchestrator.
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path
        self.verbose: bool = False
        self.debug: bool = False
        self._orchestrator: Optional[Orchestrator] = None

    @property
    def orchestrator(self) -> Orchestrator:
        """Get orchestrator instance (lazy loading)"""
        if self._orchestrator is None:
            self._orchestrator = Orchestrator.from_file(self.config_path)
        return self._orchestrator


@click.group(name=APP_NAME)
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('-d', '--debug', is_flag=True, help='Enable debug output')
@click.option('-q', '--quiet', is_flag=True, help='Suppress all output except errors')
@click.option('-c', '--config', 'config_path', type=click.Path(dir_okay=False),
              help='Configuration file (default: deploy-orchestrator.yaml)')
@click.pass_context
def cli(ctx, verbose, debug, quiet, config_path):
    """Deploy Orchestrator - Webhook-driven deployments with approval

    Source-control events are matched against application triggers and
    turned into deployment records. Records either run right away or wait
    for a human to approve them with a one-time token.
    """
    # Setup logging
    if quiet:
        logging.disable(logging.CRITICAL)
    else:
        setup_logging(verbose=verbose, debug=debug)

    ctx.obj = Context(config_path)
    ctx.obj.verbose = verbose
    ctx.obj.debug = debug


# Register commands
cli.add_command(apps.apps)
cli.add_command(apps.check)
cli.add_command(deploy.trigger)
cli.add_command(deploy.rollback)
cli.add_command(deploy.cancel)
cli.add_command(approval.approve)
cli.add_command(approval.reject)
cli.add_command(approval.pending)
cli.add_command(status.status)
cli.add_command(status.active)
cli.add_command(status.history)
cli.add_command(releases.releases)
cli.add_command(webhook.webhook)
cli.add_command(maintenance.expire)
cli.add_command(maintenance.cleanup)


def main():
    """Main entry point for the CLI application

    This function handles:
    - Keyboard interrupts
    - Unexpected exceptions with proper error display
    """
    try:
        cli(prog_name=APP_NAME)

    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(130)

    except Exception as e:
        console.print(f"[red]Unexpected error: {e}[/red]")
        if '--debug' in sys.argv or '-d' in sys.argv:
            console.print_exception()
        sys.exit(1)


if __name__ == "__main__":
    main()

"""Orchestrator context decorator for CLI commands"""

from functools import wraps
from typing import Any, Callable, Coroutine, TypeVar

import click

from ..utils.output import console, print_error
from ...api.exceptions import OrchestratorError
from ...api.orchestrator import Orchestrator
from ...utils.async_utils import run_async

T = TypeVar('T')


def with_orchestrator(func: Callable) -> Callable:
    """Decorator that hands the command a configured orchestrator

    This decorator:
    1. Loads the configuration through the CLI context
    2. Passes the orchestrator as the ``orchestrator`` keyword
    3. Turns orchestrator errors into a rich error line and exit status 1

    Args:
        func: Command function to decorate

    Returns:
        Decorated function
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        ctx = click.get_current_context()

        try:
            kwargs['orchestrator'] = ctx.obj.orchestrator
            return func(*args, **kwargs)
        except OrchestratorError as e:
            print_error(str(e))
            if ctx.obj.debug:
                console.print_exception()
            ctx.exit(1)

    return wrapper


def run_command(orchestrator: Orchestrator, coro: Coroutine[Any, Any, T]) -> T:
    """
    Run one command coroutine on a fresh event loop

    Dispatched deployments are awaited and the store is closed before the
    loop ends.
    """
    async def runner():
        try:
            return await coro
        finally:
            await orchestrator.close()

    return run_async(runner())

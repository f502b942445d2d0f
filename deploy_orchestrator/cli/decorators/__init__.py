# deploy_orchestrator/cli/decorators/__init__.py
"""CLI decorators"""

from .orchestrator import with_orchestrator, run_command

__all__ = [
    'with_orchestrator',
    'run_command',
]

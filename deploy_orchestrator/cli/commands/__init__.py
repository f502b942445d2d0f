# deploy_orchestrator/cli/commands/__init__.py
"""CLI commands"""

from . import apps
from . import deploy
from . import approval
from . import status
from . import releases
from . import webhook
from . import maintenance

__all__ = [
    "apps",
    "deploy",
    "approval",
    "status",
    "releases",
    "webhook",
    "maintenance",
]

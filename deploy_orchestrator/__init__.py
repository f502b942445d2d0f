"""Deploy Orchestrator - webhook-driven deployments with human approval.

Source-control events are matched against per-application triggers, turned
into auditable deployment records and executed through an external story
runner, either in place or as atomically activated releases.
"""

from .__version__ import __version__, __version_info__, __author__, __email__, __license__

# Exceptions
from .api.exceptions import (
    OrchestratorError,
    ConfigError,
    AppNotFoundError,
    TriggerNotFoundError,
    DeploymentNotFoundError,
    ApprovalError,
    DeploymentConflictError,
    DeployError,
    ReleaseNotFoundError,
    NoPreviousReleaseError,
    RunnerTimeoutError,
)

# Core API
from .api.orchestrator import Orchestrator, trigger

# Data models
from .models.config import OrchestratorConfig, AppConfig, Trigger
from .models.deployment import DeploymentRecord
from .models.release import ReleaseRecord, ReleaseInfo
from .models.event import InboundEvent
from .models.result import CreatedDeployment, ApprovalOutcome, EventOutcome

__all__ = [
    # Version information
    "__version__",
    "__version_info__",
    "__author__",
    "__email__",
    "__license__",

    # Main classes
    "Orchestrator",

    # Core API functions
    "trigger",

    # Data models
    "OrchestratorConfig",
    "AppConfig",
    "Trigger",
    "DeploymentRecord",
    "ReleaseRecord",
    "ReleaseInfo",
    "InboundEvent",
    "CreatedDeployment",
    "ApprovalOutcome",
    "EventOutcome",

    # Exceptions
    "OrchestratorError",
    "ConfigError",
    "AppNotFoundError",
    "TriggerNotFoundError",
    "DeploymentNotFoundError",
    "ApprovalError",
    "DeploymentConflictError",
    "DeployError",
    "ReleaseNotFoundError",
    "NoPreviousReleaseError",
    "RunnerTimeoutError",
]

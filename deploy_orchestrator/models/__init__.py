# deploy_orchestrator/models/__init__.py
"""Data models for deploy-orchestrator"""

from .config import (
    Trigger,
    AdvancedOptions,
    AppConfig,
    RunnerConfig,
    ApprovalConfig,
    GithubConfig,
    StorageConfig,
    DispatchConfig,
    OrchestratorConfig,
)
from .deployment import DeploymentRecord
from .release import ReleaseRecord, ReleaseInfo
from .event import InboundEvent
from .result import (
    ProcessResult,
    DeployerResult,
    CreatedDeployment,
    ApprovalOutcome,
    EventOutcome,
    CleanupResult,
)

__all__ = [
    # Config models
    "Trigger",
    "AdvancedOptions",
    "AppConfig",
    "RunnerConfig",
    "ApprovalConfig",
    "GithubConfig",
    "StorageConfig",
    "DispatchConfig",
    "OrchestratorConfig",

    # Record models
    "DeploymentRecord",
    "ReleaseRecord",
    "ReleaseInfo",
    "InboundEvent",

    # Result models
    "ProcessResult",
    "DeployerResult",
    "CreatedDeployment",
    "ApprovalOutcome",
    "EventOutcome",
    "CleanupResult",
]

# deploy_orchestrator/api/__init__.py
"""API layer for deploy-orchestrator"""

from .exceptions import (
    OrchestratorError,
    ConfigError,
    InvalidConfigurationError,
    AppNotFoundError,
    TriggerNotFoundError,
    DeploymentNotFoundError,
    ApprovalError,
    TokenNotFoundError,
    ApprovalExpiredError,
    InvalidStateError,
    IllegalTransitionError,
    DeploymentConflictError,
    DuplicateDeliveryError,
    DeployError,
    ReleaseNotFoundError,
    NoPreviousReleaseError,
    RunnerError,
    RunnerTimeoutError,
    StorageError,
    SignatureError,
)
from .orchestrator import Orchestrator, trigger

__all__ = [
    # Main classes
    "Orchestrator",

    # Convenience functions
    "trigger",

    # Exceptions
    "OrchestratorError",
    "ConfigError",
    "InvalidConfigurationError",
    "AppNotFoundError",
    "TriggerNotFoundError",
    "DeploymentNotFoundError",
    "ApprovalError",
    "TokenNotFoundError",
    "ApprovalExpiredError",
    "InvalidStateError",
    "IllegalTransitionError",
    "DeploymentConflictError",
    "DuplicateDeliveryError",
    "DeployError",
    "ReleaseNotFoundError",
    "NoPreviousReleaseError",
    "RunnerError",
    "RunnerTimeoutError",
    "StorageError",
    "SignatureError",
]

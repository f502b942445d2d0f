"""Exception definitions for deploy-orchestrator API"""

from typing import List, Optional

from ..constants import ErrorCode


class OrchestratorError(Exception):
    """Base exception for deploy-orchestrator"""

    def __init__(self, message: str, error_code: str = None):
        super().__init__(message)
        self.error_code = error_code


class ConfigError(OrchestratorError):
    """Configuration error"""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.CONFIG_FORMAT_ERROR)


class InvalidConfigurationError(ConfigError):
    """One application definition failed validation"""

    def __init__(self, app_key: str, errors: List[str]):
        message = f"Invalid configuration for app '{app_key}': {'; '.join(errors)}"
        super().__init__(message)
        self.app_key = app_key
        self.errors = list(errors)


class AppNotFoundError(OrchestratorError):
    """Application key is not registered"""

    def __init__(self, app_key: str):
        super().__init__(f"App not found: {app_key}", ErrorCode.APP_NOT_FOUND)
        self.app_key = app_key


class TriggerNotFoundError(OrchestratorError):
    """Trigger name is not defined for an application"""

    def __init__(self, app_key: str, trigger_name: str, available: Optional[List[str]] = None):
        message = f"Trigger not found: {trigger_name} (app: {app_key})"
        if available:
            message += f". Available triggers: {', '.join(available)}"
        super().__init__(message, ErrorCode.TRIGGER_NOT_FOUND)
        self.app_key = app_key
        self.trigger_name = trigger_name


class DeploymentNotFoundError(OrchestratorError):
    """Deployment record not found"""

    def __init__(self, deployment_id: str):
        super().__init__(f"Deployment not found: {deployment_id}", ErrorCode.DEPLOYMENT_NOT_FOUND)
        self.deployment_id = deployment_id


class ApprovalError(OrchestratorError):
    """Base class for approve/reject failures

    ``reason`` is the stable outcome name reported to callers.
    """

    reason = "error"


class TokenNotFoundError(ApprovalError):
    """No pending deployment matches the presented token"""

    reason = "not_found"

    def __init__(self, token_prefix: str = ""):
        super().__init__("Deployment not found or already processed", ErrorCode.TOKEN_NOT_FOUND)
        self.token_prefix = token_prefix


class ApprovalExpiredError(ApprovalError):
    """Approval window has passed"""

    reason = "expired"

    def __init__(self, deployment_id: str):
        super().__init__(f"Approval for deployment {deployment_id} has expired", ErrorCode.APPROVAL_EXPIRED)
        self.deployment_id = deployment_id


class InvalidStateError(ApprovalError):
    """Operation attempted outside its legal status"""

    reason = "wrong_status"

    def __init__(self, deployment_id: str, status: str, operation: str):
        super().__init__(
            f"Deployment {deployment_id} cannot be {operation} (status: {status})",
            ErrorCode.WRONG_STATUS
        )
        self.deployment_id = deployment_id
        self.status = status
        self.operation = operation


class IllegalTransitionError(OrchestratorError):
    """Transition not present in the state table"""

    def __init__(self, deployment_id: str, status: str, event: str):
        super().__init__(
            f"Illegal transition '{event}' from status '{status}' for deployment {deployment_id}",
            ErrorCode.ILLEGAL_TRANSITION
        )
        self.deployment_id = deployment_id
        self.status = status
        self.event = event


class DeploymentConflictError(OrchestratorError):
    """An active deployment already exists for the same app and trigger"""

    def __init__(self, app_key: str, trigger_name: str, active_id: str):
        super().__init__(
            f"Active deployment in progress for {app_key}:{trigger_name}: {active_id}",
            ErrorCode.DEPLOYMENT_CONFLICT
        )
        self.app_key = app_key
        self.trigger_name = trigger_name
        self.active_id = active_id


class DuplicateDeliveryError(OrchestratorError):
    """An event with the same delivery id was already processed"""

    def __init__(self, delivery_id: str, existing_id: str):
        super().__init__(
            f"Delivery {delivery_id} already processed as deployment {existing_id}",
            ErrorCode.DUPLICATE_DELIVERY
        )
        self.delivery_id = delivery_id
        self.existing_id = existing_id


class DeployError(OrchestratorError):
    """Deployment operation error"""

    def __init__(self, message: str, error_code: str = ErrorCode.DEPLOY_FAILED):
        super().__init__(message, error_code)


class ReleaseNotFoundError(DeployError):
    """Named release does not exist for the app"""

    def __init__(self, app_key: str, release_name: str):
        super().__init__(f"Release not found: {release_name} (app: {app_key})", ErrorCode.RELEASE_NOT_FOUND)
        self.app_key = app_key
        self.release_name = release_name


class NoPreviousReleaseError(DeployError):
    """Rollback requested with no qualifying release"""

    def __init__(self, app_key: str):
        super().__init__(f"No previous release available for app '{app_key}'", ErrorCode.NO_PREVIOUS_RELEASE)
        self.app_key = app_key


class RunnerError(OrchestratorError):
    """External process could not be started"""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.RUNNER_FAILED)


class RunnerTimeoutError(RunnerError):
    """External process exceeded its wall-clock timeout and was killed"""

    def __init__(self, story: str, timeout: float, output: str = ""):
        super().__init__(f"Story '{story}' timed out after {timeout:g} seconds")
        self.error_code = ErrorCode.RUNNER_TIMEOUT
        self.story = story
        self.timeout = timeout
        self.output = output


class StorageError(OrchestratorError):
    """Persistence operation error"""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.STORAGE_ERROR)


class SignatureError(OrchestratorError):
    """Webhook signature did not verify"""

    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(message, ErrorCode.INVALID_SIGNATURE)

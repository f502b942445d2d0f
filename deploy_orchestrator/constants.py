"""Global constants for deploy-orchestrator"""

from enum import Enum
import re

APP_NAME = "deploy-orchestrator"
LOG_TAG = "[deploy-orchestrator]"
LOG_FORMAT = "%(message)s"

# Configuration
CONFIG_VERSION = "1.0"
DEFAULT_CONFIG_FILE = "deploy-orchestrator.yaml"
DEFAULT_STORE_FILE = ".deploy-orchestrator/deployments.json"

# Environment variables
ENV_CONFIG_PATH = "DEPLOY_ORCHESTRATOR_CONFIG"
ENV_LOG_LEVEL = "DEPLOY_ORCHESTRATOR_LOG_LEVEL"


class DeploymentStatus(str, Enum):
    """Lifecycle status of a deployment record"""
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    QUEUED = "queued"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    REJECTED = "rejected"
    EXPIRED = "expired"

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


ACTIVE_STATUSES = frozenset({
    DeploymentStatus.PENDING_APPROVAL,
    DeploymentStatus.APPROVED,
    DeploymentStatus.QUEUED,
    DeploymentStatus.RUNNING,
})

TERMINAL_STATUSES = frozenset({
    DeploymentStatus.SUCCESS,
    DeploymentStatus.FAILED,
    DeploymentStatus.REJECTED,
    DeploymentStatus.EXPIRED,
})


class DeploymentStrategy(str, Enum):
    """Release strategy of an application"""
    SIMPLE = "simple"
    ADVANCED = "advanced"

    @property
    def story_prefix(self) -> str:
        return "advanced-" if self is DeploymentStrategy.ADVANCED else ""


class EventKind(str, Enum):
    """Source-control event kinds a trigger can listen to"""
    PUSH = "push"
    RELEASE = "release"


class TriggerType(str, Enum):
    """What caused a deployment record to be created"""
    PUSH = "push"
    RELEASE = "release"
    MANUAL = "manual"
    ROLLBACK = "rollback"

    @property
    def is_webhook(self) -> bool:
        return self in (TriggerType.PUSH, TriggerType.RELEASE)


# Approval
DEFAULT_TOKEN_LENGTH = 64
DEFAULT_APPROVAL_TIMEOUT_HOURS = 2
TOKEN_LOG_PREFIX_LENGTH = 8
DEFAULT_REJECTION_REASON = "Rejected via web interface"
DEFAULT_CANCEL_REASON = "Manually cancelled"

# Runner
DEFAULT_RUNNER_COMMAND = ["envoy", "run"]
DEFAULT_RUNNER_TIMEOUT = 1800  # 30 minutes
RESCUE_GRACE_SECONDS = 300
TIMEOUT_EXIT_CODE = 124
DEFAULT_FAILURE_EXIT_CODE = 1

# Stories
ROLLBACK_STORY = "rollback"
ADVANCED_ROLLBACK_STORY = "advanced-rollback"
SIMPLE_LIST_RELEASES_STORY = "simple-list-releases"
ROLLBACK_TRIGGER_NAME = "rollback"

# Advanced strategy defaults
DEFAULT_RELEASES_PATH = "releases"
DEFAULT_SHARED_PATH = "shared"
DEFAULT_CURRENT_LINK = "current"
DEFAULT_KEEP_RELEASES = 5
DEFAULT_SHARED_DIRS = ["storage"]
DEFAULT_SHARED_FILES = [".env"]
RELEASE_NAME_TIME_FORMAT = "%Y%m%d_%H%M%S"
SHORT_SHA_LENGTH = 7

# Housekeeping
DEFAULT_RECORD_RETENTION_DAYS = 90

# Dispatch
DEFAULT_MAX_WORKERS = 4
DEFAULT_QUEUE_NAME = "deployments"

# Storage types
class StorageType(str, Enum):
    MEMORY = "memory"
    FILESYSTEM = "filesystem"


# Error codes
class ErrorCode:
    CONFIG_FORMAT_ERROR = "DO001"
    APP_NOT_FOUND = "DO002"
    TRIGGER_NOT_FOUND = "DO003"
    DEPLOYMENT_NOT_FOUND = "DO004"
    TOKEN_NOT_FOUND = "DO005"
    APPROVAL_EXPIRED = "DO006"
    WRONG_STATUS = "DO007"
    ILLEGAL_TRANSITION = "DO008"
    DEPLOYMENT_CONFLICT = "DO009"
    DUPLICATE_DELIVERY = "DO010"
    DEPLOY_FAILED = "DO011"
    NO_PREVIOUS_RELEASE = "DO012"
    RELEASE_NOT_FOUND = "DO013"
    RUNNER_FAILED = "DO014"
    RUNNER_TIMEOUT = "DO015"
    STORAGE_ERROR = "DO016"
    INVALID_SIGNATURE = "DO017"


# Validation patterns
SHELL_METACHARACTERS = re.compile(r"[;&|`$]")
GITHUB_REPOSITORY_PATTERN = re.compile(r"github\.com[:/](.+)")
SHORT_HASH_PATTERN = re.compile(r"^[a-f0-9]{7,}$", re.IGNORECASE)
RUNNER_HOST_PREFIX_PATTERN = re.compile(r"^\[.*?\]:\s*")
DELIMITED_PATTERN = re.compile(r"^(?P<delim>[/#~])(?P<body>.*)(?P=delim)(?P<flags>[imsx]*)$", re.DOTALL)
RELEASES_DIR_PATH_PATTERN = re.compile(r"/releases/[^/]+/?$")

# Display constants
EMOJI_SUCCESS = "✓"
EMOJI_ERROR = "✗"
EMOJI_WARNING = "⚠"
EMOJI_INFO = "ℹ"
EMOJI_ARROW = "→"
EMOJI_ROCKET = "🚀"
EMOJI_LINK = "🔗"

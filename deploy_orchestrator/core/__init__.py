"""Core functionality for deploy-orchestrator"""

from .validation_engine import ValidationEngine, ValidationResult
from .app_registry import AppRegistry, normalize_repository, repositories_match
from .approval_token import ApprovalTokenService, token_prefix
from .hooks import TransitionEvent, TransitionHook, LoggingHook, NotificationHook, Notifier, LogNotifier
from .state_machine import StateMachine, TRANSITIONS, can_transition
from .concurrency import ConcurrencyGuard, guard_key
from .dispatcher import Dispatcher

__all__ = [
    "ValidationEngine",
    "ValidationResult",
    "AppRegistry",
    "normalize_repository",
    "repositories_match",
    "ApprovalTokenService",
    "token_prefix",
    "TransitionEvent",
    "TransitionHook",
    "LoggingHook",
    "NotificationHook",
    "Notifier",
    "LogNotifier",
    "StateMachine",
    "TRANSITIONS",
    "can_transition",
    "ConcurrencyGuard",
    "guard_key",
    "Dispatcher",
]

"""Service layer for deploy-orchestrator"""

from .config_service import ConfigService, resolve_config_path
from .webhook_service import verify_github_signature, parse_github_event

__all__ = [
    "ConfigService",
    "resolve_config_path",
    "verify_github_signature",
    "parse_github_event",
]

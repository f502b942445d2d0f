# deploy_orchestrator/core/app_registry.py
"""Application registry and trigger resolution"""

import logging
from typing import Dict, List, Optional, Tuple, Any

from .validation_engine import ValidationEngine
from ..api.exceptions import AppNotFoundError, InvalidConfigurationError
from ..constants import LOG_TAG, GITHUB_REPOSITORY_PATTERN, RELEASES_DIR_PATH_PATTERN
from ..models.config import AppConfig, Trigger

logger = logging.getLogger(__name__)


def normalize_repository(identity: Optional[str]) -> Optional[str]:
    """
    Normalize a repository identity for comparison

    ``git@github.com:Org/Repo.git``, ``https://github.com/org/repo/`` and
    ``org/repo`` all normalize to ``org/repo``.

    Args:
        identity: Repository name or URL

    Returns:
        Normalized identity, or None when empty
    """
    if not identity:
        return None

    value = identity.strip().rstrip("/")
    if value.endswith(".git"):
        value = value[:-4]

    match = GITHUB_REPOSITORY_PATTERN.search(value)
    if match:
        value = match.group(1)

    return value.rstrip("/").casefold() or None


def repositories_match(configured: Optional[str], incoming: Optional[str]) -> bool:
    """Exact match after normalization; empty values never match"""
    left = normalize_repository(configured)
    right = normalize_repository(incoming)
    return left is not None and left == right


class AppRegistry:
    """Validated, immutable set of application configurations"""

    def __init__(self, apps: Optional[Dict[str, AppConfig]] = None):
        self._apps: Dict[str, AppConfig] = dict(apps or {})

    @classmethod
    def from_config(cls,
                    apps: Dict[str, Dict[str, Any]],
                    engine: Optional[ValidationEngine] = None) -> 'AppRegistry':
        """
        Validate and load every application definition

        Loading is all-or-nothing: the first invalid app aborts registration.

        Args:
            apps: Mapping of app key to raw definition
            engine: Validation engine

        Returns:
            AppRegistry

        Raises:
            InvalidConfigurationError: If any app definition is invalid
        """
        engine = engine or ValidationEngine()
        loaded = {}

        for app_key, data in (apps or {}).items():
            result = engine.validate_app(app_key, data)
            if not result.is_valid:
                raise InvalidConfigurationError(app_key, result.errors)

            app = AppConfig.from_dict(app_key, data)
            if app.is_advanced and RELEASES_DIR_PATH_PATTERN.search(app.path):
                logger.warning(
                    f"{LOG_TAG} App path looks like it points inside a releases directory "
                    f"app={app_key} path={app.path}"
                )
            loaded[app_key] = app

        logger.debug(f"{LOG_TAG} Registered {len(loaded)} app(s)")
        return cls(loaded)

    @property
    def apps(self) -> List[AppConfig]:
        return list(self._apps.values())

    def keys(self) -> List[str]:
        return list(self._apps.keys())

    def has(self, app_key: str) -> bool:
        return app_key in self._apps

    def __len__(self) -> int:
        return len(self._apps)

    def __contains__(self, app_key: str) -> bool:
        return app_key in self._apps

    def resolve(self, app_key: str) -> AppConfig:
        """
        Get an application by key

        Raises:
            AppNotFoundError: If the key is not registered
        """
        app = self._apps.get(app_key)
        if app is None:
            raise AppNotFoundError(app_key)
        return app

    def find_by_repository(self, identity: str) -> Optional[AppConfig]:
        """Get the first app whose repository matches exactly after normalization"""
        for app in self._apps.values():
            if repositories_match(app.repository, identity):
                return app
        return None

    def find_matching_triggers(self,
                               event_kind: str,
                               ref: str,
                               repository: Optional[str] = None) -> List[Tuple[AppConfig, Trigger]]:
        """
        Match an inbound event against every registered app

        When a repository identity is given, apps that declare a repository
        must match it exactly. Apps without a configured repository are not
        filtered by repository.

        Args:
            event_kind: push or release
            ref: Branch or tag
            repository: Repository identity of the event

        Returns:
            List of (app, trigger) pairs, one per matching trigger
        """
        matches = []

        for app in self._apps.values():
            if repository is not None and app.repository and not repositories_match(app.repository, repository):
                continue

            for trigger in app.triggers:
                if trigger.matches(event_kind, ref):
                    matches.append((app, trigger))

        logger.debug(
            f"{LOG_TAG} Trigger resolution event={event_kind} ref={ref} "
            f"repository={repository} matches={len(matches)}"
        )
        return matches

# deploy_orchestrator/core/validation_engine.py
"""Validation engine for application and trigger definitions"""

import re
from dataclasses import dataclass, field
from typing import List, Dict, Any

from ..constants import (
    DeploymentStrategy,
    EventKind,
    SHELL_METACHARACTERS,
)
from ..models.config import compile_tag_pattern


@dataclass
class ValidationResult:
    """Validation result container"""
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        """Add error message"""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        """Add warning message"""
        self.warnings.append(message)

    def merge(self, other: 'ValidationResult') -> None:
        """Merge another result into this one"""
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        if not other.is_valid:
            self.is_valid = False

    def __str__(self) -> str:
        """String representation"""
        lines = []

        if self.errors:
            lines.append("Errors:")
            for error in self.errors:
                lines.append(f"  ✗ {error}")

        if self.warnings:
            lines.append("Warnings:")
            for warning in self.warnings:
                lines.append(f"  ⚠ {warning}")

        if self.is_valid and not self.errors and not self.warnings:
            lines.append("✓ All validations passed")

        return '\n'.join(lines)


class ValidationEngine:
    """Validate raw application definitions before they are registered"""

    def validate_app(self, app_key: str, data: Dict[str, Any]) -> ValidationResult:
        """
        Validate one application definition

        Every violation is collected so the caller can report them together.

        Args:
            app_key: Application key
            data: Raw application definition

        Returns:
            ValidationResult
        """
        result = ValidationResult()

        if not isinstance(data, dict):
            result.add_error("Application definition must be a mapping")
            return result

        strategy = data.get("strategy", DeploymentStrategy.SIMPLE.value)
        valid_strategies = [s.value for s in DeploymentStrategy]
        if strategy not in valid_strategies:
            result.add_error(
                f"Invalid strategy '{strategy}'. Must be one of: {', '.join(valid_strategies)}"
            )

        result.merge(self.validate_path(data.get("path")))

        advanced = data.get("advanced") or {}
        if not isinstance(advanced, dict):
            result.add_error("'advanced' options must be a mapping")
        elif "keep_releases" in advanced:
            try:
                int(advanced["keep_releases"])
            except (TypeError, ValueError):
                result.add_error(f"keep_releases must be an integer, got '{advanced['keep_releases']}'")

        triggers = data.get("triggers") or []
        if not isinstance(triggers, list):
            result.add_error("'triggers' must be a list")
            return result

        seen = set()
        for index, trigger in enumerate(triggers):
            result.merge(self.validate_trigger(trigger, index))
            name = trigger.get("name") if isinstance(trigger, dict) else None
            if name:
                if name in seen:
                    result.add_error(f"Duplicate trigger name '{name}'")
                seen.add(name)

        return result

    def validate_path(self, path: Any) -> ValidationResult:
        """Reject filesystem paths carrying shell metacharacters"""
        result = ValidationResult()

        if path is None:
            return result

        if not isinstance(path, str) or not path:
            result.add_error("Path must be a non-empty string")
        elif SHELL_METACHARACTERS.search(path):
            result.add_error(f"Path contains shell metacharacters: '{path}'")

        return result

    def validate_trigger(self, trigger: Any, index: int = 0) -> ValidationResult:
        """
        Validate one trigger definition

        Args:
            trigger: Raw trigger definition
            index: Position in the trigger list, for messages

        Returns:
            ValidationResult
        """
        result = ValidationResult()

        if not isinstance(trigger, dict):
            result.add_error(f"Trigger #{index + 1} must be a mapping")
            return result

        name = trigger.get("name")
        label = f"Trigger '{name}'" if name else f"Trigger #{index + 1}"
        if not name:
            result.add_error(f"{label} is missing a name")

        kind = trigger.get("on")
        valid_kinds = [k.value for k in EventKind]
        if kind not in valid_kinds:
            result.add_error(
                f"{label} has invalid event '{kind}'. Must be one of: {', '.join(valid_kinds)}"
            )
        elif kind == EventKind.PUSH.value and not trigger.get("branch"):
            result.add_error(f"{label} listens to push but declares no branch")
        elif kind == EventKind.RELEASE.value:
            result.merge(self.validate_tag_pattern(trigger.get("tag_pattern"), label))

        timeout = trigger.get("approval_timeout")
        if timeout is not None:
            if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
                result.add_error(f"{label} approval_timeout must be a number, got '{timeout}'")
            elif timeout <= 0:
                result.add_error(f"{label} approval_timeout must be positive, got {timeout}")

        return result

    def validate_tag_pattern(self, pattern: Any, label: str = "Trigger") -> ValidationResult:
        """Check that a release tag pattern compiles"""
        result = ValidationResult()

        if not pattern or not isinstance(pattern, str):
            result.add_error(f"{label} listens to release but declares no tag_pattern")
            return result

        try:
            compile_tag_pattern(pattern).search("")
        except (re.error, KeyError) as e:
            result.add_error(f"{label} has an invalid tag_pattern '{pattern}': {e}")

        return result

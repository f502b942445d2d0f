"""Configuration data models"""

import os
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any

from ..constants import (
    DeploymentStrategy,
    StorageType,
    DELIMITED_PATTERN,
    DEFAULT_APPROVAL_TIMEOUT_HOURS,
    DEFAULT_CURRENT_LINK,
    DEFAULT_KEEP_RELEASES,
    DEFAULT_MAX_WORKERS,
    DEFAULT_QUEUE_NAME,
    DEFAULT_RELEASES_PATH,
    DEFAULT_RUNNER_COMMAND,
    DEFAULT_RUNNER_TIMEOUT,
    DEFAULT_SHARED_DIRS,
    DEFAULT_SHARED_FILES,
    DEFAULT_SHARED_PATH,
    DEFAULT_STORE_FILE,
    DEFAULT_TOKEN_LENGTH,
)


def compile_tag_pattern(pattern: str) -> "re.Pattern":
    """Compile a tag pattern, accepting ``/.../flags`` delimited notation

    Args:
        pattern: Raw pattern from configuration

    Returns:
        Compiled regular expression

    Raises:
        re.error: If the pattern does not compile
    """
    match = DELIMITED_PATTERN.match(pattern)
    if not match:
        return re.compile(pattern)

    flags = 0
    for flag in match.group("flags"):
        flags |= {
            "i": re.IGNORECASE,
            "m": re.MULTILINE,
            "s": re.DOTALL,
            "x": re.VERBOSE,
        }[flag]
    return re.compile(match.group("body"), flags)


@dataclass(frozen=True)
class Trigger:
    """A named rule mapping a source event to a deployment policy"""

    name: str
    on: str  # push, release
    branch: Optional[str] = None
    tag_pattern: Optional[str] = None
    auto_deploy: bool = True
    approval_timeout: float = DEFAULT_APPROVAL_TIMEOUT_HOURS  # hours
    story: Optional[str] = None

    @property
    def requires_approval(self) -> bool:
        return not self.auto_deploy

    @property
    def story_name(self) -> str:
        return self.story or self.name

    def matches(self, event_kind: str, ref: str) -> bool:
        """Check whether an event kind and ref satisfy this trigger

        Branch triggers accept either the bare branch name or the
        ``refs/heads/<branch>`` form. Tag triggers apply the configured
        pattern as a regular expression search against the raw ref.
        """
        if self.on != event_kind:
            return False

        if event_kind == "push" and self.branch:
            return ref == self.branch or ref == f"refs/heads/{self.branch}"

        if event_kind == "release" and self.tag_pattern:
            return compile_tag_pattern(self.tag_pattern).search(ref) is not None

        return True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        data = {
            "name": self.name,
            "on": self.on,
            "auto_deploy": self.auto_deploy,
            "approval_timeout": self.approval_timeout,
        }
        if self.branch:
            data["branch"] = self.branch
        if self.tag_pattern:
            data["tag_pattern"] = self.tag_pattern
        if self.story:
            data["story"] = self.story
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Trigger':
        """Create from dictionary"""
        timeout = data.get("approval_timeout")
        return cls(
            name=str(data.get("name", "")),
            on=str(data.get("on", "")),
            branch=data.get("branch"),
            tag_pattern=data.get("tag_pattern"),
            auto_deploy=bool(data.get("auto_deploy", True)),
            approval_timeout=DEFAULT_APPROVAL_TIMEOUT_HOURS if timeout is None else timeout,
            story=data.get("story"),
        )


@dataclass(frozen=True)
class AdvancedOptions:
    """Options for the release-based strategy"""

    releases_path: str = DEFAULT_RELEASES_PATH
    shared_path: str = DEFAULT_SHARED_PATH
    current_link: str = DEFAULT_CURRENT_LINK
    keep_releases: int = DEFAULT_KEEP_RELEASES
    shared_dirs: List[str] = field(default_factory=lambda: list(DEFAULT_SHARED_DIRS))
    shared_files: List[str] = field(default_factory=lambda: list(DEFAULT_SHARED_FILES))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "releases_path": self.releases_path,
            "shared_path": self.shared_path,
            "current_link": self.current_link,
            "keep_releases": self.keep_releases,
            "shared_dirs": list(self.shared_dirs),
            "shared_files": list(self.shared_files),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AdvancedOptions':
        """Create from dictionary"""
        return cls(
            releases_path=data.get("releases_path", DEFAULT_RELEASES_PATH),
            shared_path=data.get("shared_path", DEFAULT_SHARED_PATH),
            current_link=data.get("current_link", DEFAULT_CURRENT_LINK),
            keep_releases=int(data.get("keep_releases", DEFAULT_KEEP_RELEASES)),
            shared_dirs=list(data.get("shared_dirs", DEFAULT_SHARED_DIRS)),
            shared_files=list(data.get("shared_files", DEFAULT_SHARED_FILES)),
        )


@dataclass(frozen=True)
class AppConfig:
    """Deployment configuration of one managed application"""

    key: str
    name: str
    path: str
    strategy: str = DeploymentStrategy.SIMPLE.value
    repository: Optional[str] = None
    advanced: AdvancedOptions = field(default_factory=AdvancedOptions)
    triggers: List[Trigger] = field(default_factory=list)
    notifications: Dict[str, str] = field(default_factory=dict)

    @property
    def strategy_type(self) -> DeploymentStrategy:
        return DeploymentStrategy(self.strategy)

    @property
    def is_simple(self) -> bool:
        return self.strategy == DeploymentStrategy.SIMPLE.value

    @property
    def is_advanced(self) -> bool:
        return self.strategy == DeploymentStrategy.ADVANCED.value

    @property
    def releases_path(self) -> str:
        return os.path.join(self.path, self.advanced.releases_path)

    @property
    def shared_path(self) -> str:
        return os.path.join(self.path, self.advanced.shared_path)

    @property
    def current_link(self) -> str:
        return os.path.join(self.path, self.advanced.current_link)

    @property
    def keep_releases(self) -> int:
        """Retention count, floored at 1"""
        return max(1, self.advanced.keep_releases)

    def get_trigger(self, name: str) -> Optional[Trigger]:
        """Get trigger by name"""
        for trigger in self.triggers:
            if trigger.name == name:
                return trigger
        return None

    def story_for(self, trigger: Trigger) -> str:
        """Resolve the story name run for a trigger"""
        return f"{self.strategy_type.story_prefix}{trigger.story_name}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        data = {
            "name": self.name,
            "path": self.path,
            "strategy": self.strategy,
            "triggers": [t.to_dict() for t in self.triggers],
            "notifications": dict(self.notifications),
        }
        if self.repository:
            data["repository"] = self.repository
        if self.is_advanced:
            data["advanced"] = self.advanced.to_dict()
        return data

    @classmethod
    def from_dict(cls, key: str, data: Dict[str, Any]) -> 'AppConfig':
        """Create from dictionary"""
        strategy = data.get("strategy", DeploymentStrategy.SIMPLE.value)
        notifications = {
            channel: str(target)
            for channel, target in (data.get("notifications") or {}).items()
            if target
        }
        return cls(
            key=key,
            name=data.get("name") or key,
            path=str(data.get("path") or os.getcwd()),
            strategy=strategy,
            repository=data.get("repository") or None,
            advanced=AdvancedOptions.from_dict(data.get("advanced") or {}),
            triggers=[Trigger.from_dict(t) for t in data.get("triggers") or []],
            notifications=notifications,
        )


@dataclass
class RunnerConfig:
    """External story runner configuration"""

    command: List[str] = field(default_factory=lambda: list(DEFAULT_RUNNER_COMMAND))
    timeout: float = DEFAULT_RUNNER_TIMEOUT
    working_dir: Optional[str] = None
    env: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        data = {"command": list(self.command), "timeout": self.timeout}
        if self.working_dir:
            data["working_dir"] = self.working_dir
        if self.env:
            data["env"] = dict(self.env)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RunnerConfig':
        """Create from dictionary"""
        command = data.get("command", DEFAULT_RUNNER_COMMAND)
        if isinstance(command, str):
            command = command.split()
        return cls(
            command=list(command),
            timeout=float(data.get("timeout", DEFAULT_RUNNER_TIMEOUT)),
            working_dir=data.get("working_dir"),
            env={k: str(v) for k, v in (data.get("env") or {}).items()},
        )


@dataclass
class ApprovalConfig:
    """Approval token settings"""

    token_length: int = DEFAULT_TOKEN_LENGTH
    secret: Optional[str] = None
    base_url: Optional[str] = None

    def approve_url(self, token: str) -> Optional[str]:
        if not self.base_url:
            return None
        return f"{self.base_url.rstrip('/')}/approve/{token}"

    def reject_url(self, token: str) -> Optional[str]:
        if not self.base_url:
            return None
        return f"{self.base_url.rstrip('/')}/reject/{token}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ApprovalConfig':
        """Create from dictionary"""
        return cls(
            token_length=int(data.get("token_length", DEFAULT_TOKEN_LENGTH)),
            secret=data.get("secret") or None,
            base_url=data.get("base_url") or None,
        )


@dataclass
class GithubConfig:
    """GitHub webhook settings"""

    webhook_secret: Optional[str] = None
    verify_signature: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GithubConfig':
        """Create from dictionary"""
        return cls(
            webhook_secret=data.get("webhook_secret") or None,
            verify_signature=bool(data.get("verify_signature", True)),
        )


@dataclass
class StorageConfig:
    """Persistence backend selection"""

    type: str = StorageType.FILESYSTEM.value
    path: str = DEFAULT_STORE_FILE

    @property
    def storage_type(self) -> StorageType:
        return StorageType(self.type)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StorageConfig':
        """Create from dictionary"""
        return cls(
            type=data.get("type", StorageType.FILESYSTEM.value),
            path=data.get("path", DEFAULT_STORE_FILE),
        )


@dataclass
class DispatchConfig:
    """Dispatcher settings, handed to the dispatcher at construction"""

    queue: str = DEFAULT_QUEUE_NAME
    max_workers: int = DEFAULT_MAX_WORKERS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DispatchConfig':
        """Create from dictionary"""
        return cls(
            queue=data.get("queue", DEFAULT_QUEUE_NAME),
            max_workers=max(1, int(data.get("max_workers", DEFAULT_MAX_WORKERS))),
        )


@dataclass
class OrchestratorConfig:
    """Complete configuration"""

    apps: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    runner: RunnerConfig = field(default_factory=RunnerConfig)
    approval: ApprovalConfig = field(default_factory=ApprovalConfig)
    github: GithubConfig = field(default_factory=GithubConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    notifications: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OrchestratorConfig':
        """Create from dictionary

        App definitions are kept raw here; the registry validates and
        materializes them.
        """
        data = data or {}
        return cls(
            apps=dict(data.get("apps") or {}),
            runner=RunnerConfig.from_dict(data.get("runner") or {}),
            approval=ApprovalConfig.from_dict(data.get("approval") or {}),
            github=GithubConfig.from_dict(data.get("github") or {}),
            storage=StorageConfig.from_dict(data.get("storage") or {}),
            dispatch=DispatchConfig.from_dict(data.get("dispatch") or {}),
            notifications={k: str(v) for k, v in (data.get("notifications") or {}).items() if v},
        )

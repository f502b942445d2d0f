# deploy_orchestrator/models/deployment.py
"""Deployment record model"""

import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Dict, Any, Optional

from ..constants import DeploymentStatus, TriggerType, SHORT_SHA_LENGTH
from ..utils.formatting import format_duration, parse_datetime, serialize_datetime

_DATETIME_FIELDS = (
    "expires_at",
    "approved_at",
    "rejected_at",
    "queued_at",
    "started_at",
    "completed_at",
    "created_at",
    "updated_at",
)


def new_deployment_id() -> str:
    return str(uuid.uuid4())


@dataclass
class DeploymentRecord:
    """One deployment attempt and its lifecycle

    Status and the audit timestamps are only changed through the state
    machine. ``approval_token_hash`` is a one-way digest; the plaintext token
    is never stored on the record.
    """
    app_key: str
    app_name: str
    trigger_name: str
    trigger_type: str
    strategy: str
    story: str
    id: str = field(default_factory=new_deployment_id)
    trigger_ref: Optional[str] = None
    repository: Optional[str] = None
    commit_sha: Optional[str] = None
    commit_message: Optional[str] = None
    author: Optional[str] = None
    release_name: Optional[str] = None
    release_path: Optional[str] = None
    status: str = DeploymentStatus.QUEUED.value

    # Approval
    approval_token_hash: Optional[str] = None
    expires_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    # Execution
    queued_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    output: Optional[str] = None
    exit_code: Optional[int] = None
    duration_seconds: Optional[float] = None

    # Audit
    delivery_id: Optional[str] = None
    rollback_target: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def status_type(self) -> DeploymentStatus:
        return DeploymentStatus(self.status)

    @property
    def is_active(self) -> bool:
        return self.status_type.is_active

    @property
    def is_terminal(self) -> bool:
        return self.status_type.is_terminal

    @property
    def is_pending_approval(self) -> bool:
        return self.status == DeploymentStatus.PENDING_APPROVAL.value

    @property
    def is_rollback(self) -> bool:
        return self.trigger_type == TriggerType.ROLLBACK.value

    @property
    def requires_approval(self) -> bool:
        return self.approval_token_hash is not None

    def is_expired(self, now: datetime) -> bool:
        """Check whether the approval window has passed at ``now``"""
        return self.expires_at is not None and now > self.expires_at

    @property
    def short_commit_sha(self) -> Optional[str]:
        if not self.commit_sha:
            return None
        return self.commit_sha[:SHORT_SHA_LENGTH]

    @property
    def duration_for_humans(self) -> str:
        if self.duration_seconds is None:
            return "N/A"
        return format_duration(self.duration_seconds)

    def append_output(self, text: str) -> None:
        """Append text to the captured output"""
        self.output = f"{self.output}{text}" if self.output else text

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, including the token digest"""
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in _DATETIME_FIELDS:
                value = serialize_datetime(value)
            elif isinstance(value, dict):
                value = dict(value)
            data[f.name] = value
        return data

    def to_public_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for status queries

        Every field except the approval token digest.
        """
        data = self.to_dict()
        data.pop("approval_token_hash", None)
        data["requires_approval"] = self.requires_approval
        data["short_commit_sha"] = self.short_commit_sha
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DeploymentRecord':
        """Create from dictionary"""
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            if key not in known:
                continue
            if key in _DATETIME_FIELDS:
                value = parse_datetime(value)
            kwargs[key] = value
        return cls(**kwargs)

"""Operation result models"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any

from .deployment import DeploymentRecord


@dataclass
class ProcessResult:
    """Captured result of one external process run"""

    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr"""
        if self.stdout and self.stderr:
            return f"{self.stdout.rstrip()}\n{self.stderr}"
        return self.stdout or self.stderr


@dataclass
class DeployerResult:
    """Result of a strategy deploy or rollback"""

    success: bool
    output: str = ""
    exit_code: int = 0
    release_name: Optional[str] = None
    release_path: Optional[str] = None

    @classmethod
    def from_process(cls, result: ProcessResult, **kwargs) -> 'DeployerResult':
        return cls(success=result.success, output=result.output, exit_code=result.exit_code, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        data = {
            "success": self.success,
            "output": self.output,
            "exit_code": self.exit_code,
        }
        if self.release_name:
            data["release_name"] = self.release_name
            data["release_path"] = self.release_path
        return data


@dataclass
class CreatedDeployment:
    """A freshly created record together with its plaintext approval token

    The token only exists on this object; it is handed to the caller once
    and never stored.
    """

    record: DeploymentRecord
    approval_token: Optional[str] = None

    @property
    def requires_approval(self) -> bool:
        return self.approval_token is not None


@dataclass
class ApprovalOutcome:
    """Observable result of an approve or reject call"""

    ok: bool
    error: Optional[str] = None  # not_found, expired, wrong_status
    message: str = ""
    deployment_id: Optional[str] = None
    status: Optional[str] = None

    @classmethod
    def success(cls, record: DeploymentRecord, message: str = "") -> 'ApprovalOutcome':
        return cls(ok=True, message=message, deployment_id=record.id, status=record.status)

    @classmethod
    def failure(cls, reason: str, message: str, deployment_id: Optional[str] = None) -> 'ApprovalOutcome':
        return cls(ok=False, error=reason, message=message, deployment_id=deployment_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        if self.ok:
            return {"ok": True, "deployment_id": self.deployment_id, "status": self.status}
        return {"ok": False, "error": self.error, "message": self.message}


@dataclass
class EventOutcome:
    """Outcome of one (app, trigger) match for an inbound event"""

    app_key: str
    trigger_name: str
    created: Optional[CreatedDeployment] = None
    skipped_reason: Optional[str] = None  # conflict, duplicate
    blocking_id: Optional[str] = None

    @property
    def is_created(self) -> bool:
        return self.created is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        data = {"app": self.app_key, "trigger": self.trigger_name}
        if self.created:
            data["deployment_id"] = self.created.record.id
            data["status"] = self.created.record.status
            data["requires_approval"] = self.created.requires_approval
        else:
            data["skipped"] = self.skipped_reason
            data["blocking_id"] = self.blocking_id
        return data


@dataclass
class CleanupResult:
    """Result of a housekeeping sweep"""

    removed: List[str] = field(default_factory=list)
    dry_run: bool = False

    @property
    def count(self) -> int:
        return len(self.removed)

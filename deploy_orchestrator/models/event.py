"""Inbound source-control event model"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional

from ..constants import EventKind


@dataclass(frozen=True)
class InboundEvent:
    """Normalized source-control event

    ``delivery_id`` is the dedup key of the delivering system; a second
    event carrying the same id must not create a second deployment.
    """
    event_kind: str  # push, release
    ref: str
    commit_sha: str
    author: str = "unknown"
    repository: Optional[str] = None
    commit_message: Optional[str] = None
    delivery_id: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def kind(self) -> EventKind:
        return EventKind(self.event_kind)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "event_kind": self.event_kind,
            "ref": self.ref,
            "commit_sha": self.commit_sha,
            "author": self.author,
            "repository": self.repository,
            "commit_message": self.commit_message,
            "delivery_id": self.delivery_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InboundEvent':
        """Create from dictionary"""
        return cls(
            event_kind=data["event_kind"],
            ref=data["ref"],
            commit_sha=data.get("commit_sha") or "HEAD",
            author=data.get("author") or "unknown",
            repository=data.get("repository"),
            commit_message=data.get("commit_message"),
            delivery_id=data.get("delivery_id"),
            payload=dict(data.get("payload") or {}),
        )

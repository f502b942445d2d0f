# deploy_orchestrator/models/release.py
"""Release models for the advanced strategy"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Any, Optional

from ..utils.formatting import format_size, parse_datetime, serialize_datetime


@dataclass
class ReleaseRecord:
    """A materialized release directory

    ``sequence`` is assigned by the repository and increases monotonically
    per app; ordering decisions use it rather than ``created_at``.
    """
    app_key: str
    release_name: str
    path: str
    commit_sha: Optional[str] = None
    deployment_id: Optional[str] = None
    is_active: bool = False
    size_bytes: Optional[int] = None
    sequence: int = 0
    created_at: Optional[datetime] = None

    @property
    def size_for_humans(self) -> str:
        if self.size_bytes is None:
            return "Unknown"
        return format_size(self.size_bytes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            'app_key': self.app_key,
            'release_name': self.release_name,
            'path': self.path,
            'commit_sha': self.commit_sha,
            'deployment_id': self.deployment_id,
            'is_active': self.is_active,
            'size_bytes': self.size_bytes,
            'sequence': self.sequence,
            'created_at': serialize_datetime(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReleaseRecord':
        """Create from dictionary"""
        return cls(
            app_key=data['app_key'],
            release_name=data['release_name'],
            path=data['path'],
            commit_sha=data.get('commit_sha'),
            deployment_id=data.get('deployment_id'),
            is_active=data.get('is_active', False),
            size_bytes=data.get('size_bytes'),
            sequence=data.get('sequence', 0),
            created_at=parse_datetime(data.get('created_at')),
        )


@dataclass
class ReleaseInfo:
    """Release listing entry returned by a strategy

    The simple strategy reports commits as pseudo-releases, so only ``name``
    is guaranteed.
    """
    name: str
    commit_sha: Optional[str] = None
    message: Optional[str] = None
    path: Optional[str] = None
    is_active: bool = False
    size_bytes: Optional[int] = None
    created_at: Optional[datetime] = None

    @property
    def size_for_humans(self) -> str:
        if self.size_bytes is None:
            return "Unknown"
        return format_size(self.size_bytes)

    @classmethod
    def from_record(cls, record: ReleaseRecord) -> 'ReleaseInfo':
        return cls(
            name=record.release_name,
            commit_sha=record.commit_sha,
            path=record.path,
            is_active=record.is_active,
            size_bytes=record.size_bytes,
            created_at=record.created_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            'name': self.name,
            'commit_sha': self.commit_sha,
            'message': self.message,
            'path': self.path,
            'is_active': self.is_active,
            'size_bytes': self.size_bytes,
            'created_at': serialize_datetime(self.created_at),
        }

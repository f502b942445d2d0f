# deploy_orchestrator/storage/memory.py
"""In-memory storage backend"""

import asyncio
import weakref
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, Any, Iterable, List, Optional

from .base import StorageBackend
from ..api.exceptions import (
    DuplicateDeliveryError,
    IllegalTransitionError,
    ReleaseNotFoundError,
    StorageError,
)
from ..constants import DeploymentStatus, ACTIVE_STATUSES, TERMINAL_STATUSES
from ..models.deployment import DeploymentRecord
from ..models.release import ReleaseRecord
from ..utils.formatting import utcnow

_ACTIVE_VALUES = frozenset(s.value for s in ACTIVE_STATUSES)
_TERMINAL_VALUES = frozenset(s.value for s in TERMINAL_STATUSES)
_EPOCH = datetime.fromtimestamp(0, timezone.utc)


class MemoryStorage(StorageBackend):
    """Records held as plain dictionaries in process memory

    Every read returns a fresh object, so callers never alias stored state.
    Subclasses persisting elsewhere override :meth:`_session`.
    """

    def __init__(self, config: Dict[str, Any] = None):
        super().__init__(config)
        self._deployments: Dict[str, Dict[str, Any]] = {}
        self._releases: Dict[str, List[Dict[str, Any]]] = {}
        self._sequences: Dict[str, int] = {}
        self._lock = asyncio.Lock()
        self._claim_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    async def _do_initialize(self) -> None:
        pass

    @asynccontextmanager
    async def _session(self, write: bool = False) -> AsyncIterator[None]:
        """Serialized access to the state dictionaries"""
        async with self._lock:
            yield

    @asynccontextmanager
    async def claim_lock(self, key: str) -> AsyncIterator[None]:
        lock = self._claim_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._claim_locks[key] = lock
        async with lock:
            yield

    def _records(self) -> List[DeploymentRecord]:
        return [DeploymentRecord.from_dict(data) for data in self._deployments.values()]

    # Deployments

    async def add_deployment(self, record: DeploymentRecord) -> DeploymentRecord:
        await self.initialize()
        async with self._session(write=True):
            if record.id in self._deployments:
                raise StorageError(f"Deployment already exists: {record.id}")

            if record.delivery_id:
                for data in self._deployments.values():
                    if data.get("delivery_id") == record.delivery_id:
                        raise DuplicateDeliveryError(record.delivery_id, data["id"])

            now = utcnow()
            record.created_at = record.created_at or now
            record.updated_at = now
            self._deployments[record.id] = record.to_dict()
            return DeploymentRecord.from_dict(self._deployments[record.id])

    async def get_deployment(self, deployment_id: str) -> Optional[DeploymentRecord]:
        await self.initialize()
        async with self._session():
            data = self._deployments.get(deployment_id)
            return DeploymentRecord.from_dict(data) if data else None

    async def update_deployment(self,
                                record: DeploymentRecord,
                                expected_status: Optional[str] = None) -> DeploymentRecord:
        await self.initialize()
        async with self._session(write=True):
            stored = self._deployments.get(record.id)
            if stored is None:
                raise StorageError(f"Deployment does not exist: {record.id}")

            if expected_status is not None and stored["status"] != expected_status:
                raise IllegalTransitionError(record.id, stored["status"], f"update from {expected_status}")

            record.updated_at = utcnow()
            self._deployments[record.id] = record.to_dict()
            return DeploymentRecord.from_dict(self._deployments[record.id])

    async def delete_deployment(self, deployment_id: str) -> bool:
        await self.initialize()
        async with self._session(write=True):
            return self._deployments.pop(deployment_id, None) is not None

    async def find_active(self,
                          app_key: str,
                          trigger_name: str,
                          exclude_id: Optional[str] = None) -> Optional[DeploymentRecord]:
        await self.initialize()
        async with self._session():
            candidates = [
                r for r in self._records()
                if r.app_key == app_key
                and r.trigger_name == trigger_name
                and r.status in _ACTIVE_VALUES
                and r.id != exclude_id
            ]
        candidates.sort(key=_created_key)
        return candidates[0] if candidates else None

    async def find_by_token_hash(self, token_hash: str) -> Optional[DeploymentRecord]:
        await self.initialize()
        if not token_hash:
            return None
        async with self._session():
            for data in self._deployments.values():
                if data.get("approval_token_hash") == token_hash:
                    return DeploymentRecord.from_dict(data)
        return None

    async def find_by_delivery_id(self, delivery_id: str) -> Optional[DeploymentRecord]:
        await self.initialize()
        if not delivery_id:
            return None
        async with self._session():
            for data in self._deployments.values():
                if data.get("delivery_id") == delivery_id:
                    return DeploymentRecord.from_dict(data)
        return None

    async def find_expired(self, now: datetime) -> List[DeploymentRecord]:
        await self.initialize()
        async with self._session():
            return sorted(
                (r for r in self._records()
                 if r.status == DeploymentStatus.PENDING_APPROVAL.value and r.is_expired(now)),
                key=_created_key,
            )

    async def find_stuck(self, started_before: datetime) -> List[DeploymentRecord]:
        await self.initialize()
        async with self._session():
            return sorted(
                (r for r in self._records()
                 if r.status == DeploymentStatus.RUNNING.value
                 and r.started_at is not None
                 and r.started_at < started_before),
                key=_created_key,
            )

    async def find_terminal_older_than(self, cutoff: datetime) -> List[DeploymentRecord]:
        await self.initialize()
        async with self._session():
            return sorted(
                (r for r in self._records()
                 if r.status in _TERMINAL_VALUES
                 and r.created_at is not None
                 and r.created_at < cutoff),
                key=_created_key,
            )

    async def list_deployments(self,
                               statuses: Optional[Iterable[str]] = None,
                               app_key: Optional[str] = None,
                               limit: Optional[int] = None) -> List[DeploymentRecord]:
        await self.initialize()
        wanted = {getattr(s, "value", s) for s in statuses} if statuses is not None else None
        async with self._session():
            records = [
                r for r in self._records()
                if (wanted is None or r.status in wanted)
                and (app_key is None or r.app_key == app_key)
            ]
        records.sort(key=_created_key, reverse=True)
        return records[:limit] if limit else records

    # Releases

    async def add_release(self, release: ReleaseRecord, activate: bool = False) -> ReleaseRecord:
        await self.initialize()
        async with self._session(write=True):
            releases = self._releases.setdefault(release.app_key, [])
            if any(r["release_name"] == release.release_name for r in releases):
                raise StorageError(
                    f"Release already exists: {release.release_name} (app: {release.app_key})"
                )

            sequence = self._sequences.get(release.app_key, 0) + 1
            self._sequences[release.app_key] = sequence
            release.sequence = sequence
            release.created_at = release.created_at or utcnow()

            if activate:
                for data in releases:
                    data["is_active"] = False
                release.is_active = True

            releases.append(release.to_dict())
            return ReleaseRecord.from_dict(releases[-1])

    async def list_releases(self, app_key: str) -> List[ReleaseRecord]:
        await self.initialize()
        async with self._session():
            releases = [ReleaseRecord.from_dict(data) for data in self._releases.get(app_key, [])]
        releases.sort(key=lambda r: r.sequence, reverse=True)
        return releases

    async def get_release(self, app_key: str, release_name: str) -> Optional[ReleaseRecord]:
        await self.initialize()
        async with self._session():
            for data in self._releases.get(app_key, []):
                if data["release_name"] == release_name:
                    return ReleaseRecord.from_dict(data)
        return None

    async def get_active_release(self, app_key: str) -> Optional[ReleaseRecord]:
        await self.initialize()
        async with self._session():
            for data in self._releases.get(app_key, []):
                if data.get("is_active"):
                    return ReleaseRecord.from_dict(data)
        return None

    async def activate_release(self, app_key: str, release_name: str) -> ReleaseRecord:
        await self.initialize()
        async with self._session(write=True):
            releases = self._releases.get(app_key, [])
            target = None
            for data in releases:
                if data["release_name"] == release_name:
                    target = data

            if target is None:
                raise ReleaseNotFoundError(app_key, release_name)

            for data in releases:
                data["is_active"] = data is target
            return ReleaseRecord.from_dict(target)

    async def delete_release(self, app_key: str, release_name: str) -> bool:
        await self.initialize()
        async with self._session(write=True):
            releases = self._releases.get(app_key, [])
            remaining = [r for r in releases if r["release_name"] != release_name]
            self._releases[app_key] = remaining
            return len(remaining) != len(releases)


def _created_key(record: DeploymentRecord) -> datetime:
    return record.created_at or _EPOCH

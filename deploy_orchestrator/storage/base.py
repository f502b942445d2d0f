# deploy_orchestrator/storage/base.py
"""Storage backend abstract base class"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import AsyncContextManager, Dict, Any, Iterable, List, Optional

from ..models.deployment import DeploymentRecord
from ..models.release import ReleaseRecord


class StorageBackend(ABC):
    """Abstract repository for deployment and release records

    Records handed out are copies; changes reach the store only through
    :meth:`update_deployment` and the release operations.
    """

    def __init__(self, config: Dict[str, Any] = None):
        """
        Initialize storage backend

        Args:
            config: Backend-specific configuration
        """
        self.config = config or {}
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize storage backend (e.g., create directories)"""
        if not self._initialized:
            await self._do_initialize()
            self._initialized = True

    @abstractmethod
    async def _do_initialize(self) -> None:
        """Actual initialization logic to be implemented by subclasses"""
        pass

    @abstractmethod
    def claim_lock(self, key: str) -> AsyncContextManager[None]:
        """
        Exclusive section for one (app, trigger) key

        Args:
            key: Guard key

        Returns:
            Async context manager held for the duration of a claim
        """
        pass

    # Deployments

    @abstractmethod
    async def add_deployment(self, record: DeploymentRecord) -> DeploymentRecord:
        """
        Persist a new record

        Raises:
            DuplicateDeliveryError: If the delivery id was already stored
            StorageError: If the id already exists
        """
        pass

    @abstractmethod
    async def get_deployment(self, deployment_id: str) -> Optional[DeploymentRecord]:
        pass

    @abstractmethod
    async def update_deployment(self,
                                record: DeploymentRecord,
                                expected_status: Optional[str] = None) -> DeploymentRecord:
        """
        Replace a stored record

        Args:
            record: Record to store
            expected_status: When given, the write only happens if the stored
                status still equals it

        Raises:
            StorageError: If the record does not exist
            IllegalTransitionError: If the stored status moved on meanwhile
        """
        pass

    @abstractmethod
    async def delete_deployment(self, deployment_id: str) -> bool:
        pass

    @abstractmethod
    async def find_active(self,
                          app_key: str,
                          trigger_name: str,
                          exclude_id: Optional[str] = None) -> Optional[DeploymentRecord]:
        """Oldest record in an active status for (app, trigger)"""
        pass

    @abstractmethod
    async def find_by_token_hash(self, token_hash: str) -> Optional[DeploymentRecord]:
        pass

    @abstractmethod
    async def find_by_delivery_id(self, delivery_id: str) -> Optional[DeploymentRecord]:
        pass

    @abstractmethod
    async def find_expired(self, now: datetime) -> List[DeploymentRecord]:
        """Pending records whose expiry is before ``now``"""
        pass

    @abstractmethod
    async def find_stuck(self, started_before: datetime) -> List[DeploymentRecord]:
        """Running records started before ``started_before``"""
        pass

    @abstractmethod
    async def find_terminal_older_than(self, cutoff: datetime) -> List[DeploymentRecord]:
        """Terminal records created before ``cutoff``"""
        pass

    @abstractmethod
    async def list_deployments(self,
                               statuses: Optional[Iterable[str]] = None,
                               app_key: Optional[str] = None,
                               limit: Optional[int] = None) -> List[DeploymentRecord]:
        """Records newest first, optionally filtered"""
        pass

    # Releases

    @abstractmethod
    async def add_release(self, release: ReleaseRecord, activate: bool = False) -> ReleaseRecord:
        """
        Persist a release, assigning the next per-app sequence number

        With ``activate`` every other release of the app is flipped inactive
        in the same write.
        """
        pass

    @abstractmethod
    async def list_releases(self, app_key: str) -> List[ReleaseRecord]:
        """Releases of an app, highest sequence first"""
        pass

    @abstractmethod
    async def get_release(self, app_key: str, release_name: str) -> Optional[ReleaseRecord]:
        pass

    @abstractmethod
    async def get_active_release(self, app_key: str) -> Optional[ReleaseRecord]:
        pass

    @abstractmethod
    async def activate_release(self, app_key: str, release_name: str) -> ReleaseRecord:
        """
        Mark one release active and all others inactive

        Raises:
            ReleaseNotFoundError: If the release does not exist
        """
        pass

    @abstractmethod
    async def delete_release(self, app_key: str, release_name: str) -> bool:
        pass

    async def close(self) -> None:
        """Release any resources held by the backend"""
        pass

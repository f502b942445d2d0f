# deploy_orchestrator/core/concurrency.py
"""Single-active-deployment guard per (app, trigger)"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from ..api.exceptions import DeploymentConflictError
from ..constants import LOG_TAG
from ..storage.base import StorageBackend

logger = logging.getLogger(__name__)


def guard_key(app_key: str, trigger_name: str) -> str:
    return f"{app_key}:{trigger_name}"


class ConcurrencyGuard:
    """Serialize check-then-act on one (app, trigger) pair

    Inside :meth:`claim` no other claim for the same pair runs, in this
    process (asyncio lock) or in another process sharing the store (the
    store's claim lock). Different pairs never wait on each other.
    """

    def __init__(self, store: StorageBackend):
        self.store = store
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def claim(self,
                    app_key: str,
                    trigger_name: str,
                    exclude_id: Optional[str] = None) -> AsyncIterator[None]:
        """
        Hold the pair exclusively while no other active record exists

        Args:
            app_key: Application key
            trigger_name: Trigger name
            exclude_id: Record allowed to be active already (the one being
                dispatched)

        Raises:
            DeploymentConflictError: If another record is active for the pair
        """
        key = guard_key(app_key, trigger_name)

        async with self._lock_for(key):
            async with self.store.claim_lock(key):
                active = await self.store.find_active(app_key, trigger_name, exclude_id=exclude_id)
                if active is not None:
                    logger.warning(
                        f"{LOG_TAG} Deployment refused, active deployment in progress "
                        f"app={app_key} trigger={trigger_name} active_id={active.id}"
                    )
                    raise DeploymentConflictError(app_key, trigger_name, active.id)

                yield

    async def check(self, app_key: str, trigger_name: str, exclude_id: Optional[str] = None) -> None:
        """Raise if another record is active for the pair, without holding it"""
        async with self.claim(app_key, trigger_name, exclude_id=exclude_id):
            pass

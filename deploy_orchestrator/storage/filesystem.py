"""Filesystem storage backend implementation"""

import asyncio
import fcntl
import json
import logging
import os
import re
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict, Any

import aiofiles
import aiofiles.os

from .memory import MemoryStorage
from ..api.exceptions import StorageError
from ..constants import LOG_TAG, DEFAULT_STORE_FILE

logger = logging.getLogger(__name__)

STORE_FORMAT_VERSION = 1
_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


async def _acquire_flock(path: Path):
    """Open ``path`` and take an exclusive flock without blocking the loop"""
    fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o644)
    try:
        await asyncio.get_running_loop().run_in_executor(None, fcntl.flock, fd, fcntl.LOCK_EX)
    except BaseException:
        os.close(fd)
        raise
    return fd


def _release_flock(fd: int) -> None:
    try:
        fcntl.flock(fd, fcntl.LOCK_UN)
    finally:
        os.close(fd)


class FilesystemStorage(MemoryStorage):
    """One JSON document holding every deployment and release record

    Each operation reloads the document under an exclusive file lock and
    writes it back through a temp file plus rename, so concurrent
    orchestrator processes sharing the file see a consistent state.
    """

    def __init__(self, config: Dict[str, Any] = None):
        """
        Initialize filesystem storage

        Args:
            config: Configuration including:
                - path: JSON document path
        """
        super().__init__(config)
        self.path = Path(self.config.get('path') or DEFAULT_STORE_FILE)
        self.lock_path = self.path.with_name(self.path.name + '.lock')
        self.locks_dir = self.path.parent / 'locks'

    async def _do_initialize(self) -> None:
        """Ensure the store directory exists"""
        await aiofiles.os.makedirs(self.locks_dir, exist_ok=True)

    @asynccontextmanager
    async def _session(self, write: bool = False) -> AsyncIterator[None]:
        async with self._lock:
            fd = await _acquire_flock(self.lock_path)
            try:
                await self._load()
                yield
                if write:
                    await self._save()
            finally:
                _release_flock(fd)

    @asynccontextmanager
    async def claim_lock(self, key: str) -> AsyncIterator[None]:
        await self.initialize()
        async with super().claim_lock(key):
            lock_file = self.locks_dir / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.lock"
            fd = await _acquire_flock(lock_file)
            try:
                yield
            finally:
                _release_flock(fd)

    async def _load(self) -> None:
        if not await aiofiles.os.path.exists(self.path):
            self._deployments, self._releases, self._sequences = {}, {}, {}
            return

        try:
            async with aiofiles.open(self.path, 'r', encoding='utf-8') as f:
                content = await f.read()
            data = json.loads(content) if content.strip() else {}
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to read store {self.path}: {e}")

        self._deployments = data.get('deployments', {})
        self._releases = data.get('releases', {})
        self._sequences = data.get('sequences', {})

    async def _save(self) -> None:
        document = {
            'version': STORE_FORMAT_VERSION,
            'deployments': self._deployments,
            'releases': self._releases,
            'sequences': self._sequences,
        }
        temp_path = self.path.with_name(f".{self.path.name}.{os.getpid()}.tmp")

        try:
            async with aiofiles.open(temp_path, 'w', encoding='utf-8') as f:
                await f.write(json.dumps(document, indent=2, default=str))
                await f.flush()
            await aiofiles.os.replace(temp_path, self.path)
        except OSError as e:
            logger.error(f"{LOG_TAG} Failed to write store path={self.path}: {e}")
            if await aiofiles.os.path.exists(temp_path):
                await aiofiles.os.remove(temp_path)
            raise StorageError(f"Failed to write store {self.path}: {e}")

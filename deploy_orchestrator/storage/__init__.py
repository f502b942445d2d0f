"""Persistence backends for deployment and release records"""

from .base import StorageBackend
from .memory import MemoryStorage
from .filesystem import FilesystemStorage
from .factory import StorageFactory

__all__ = [
    "StorageBackend",
    "MemoryStorage",
    "FilesystemStorage",
    "StorageFactory",
]

"""Storage backend factory"""

from typing import Dict, Type

from .base import StorageBackend
from .filesystem import FilesystemStorage
from .memory import MemoryStorage
from ..constants import StorageType
from ..models.config import StorageConfig


class StorageFactory:
    """Factory for creating storage backend instances"""

    # Registry of storage backends
    _backends: Dict[StorageType, Type[StorageBackend]] = {
        StorageType.MEMORY: MemoryStorage,
        StorageType.FILESYSTEM: FilesystemStorage,
    }

    @classmethod
    def create_from_config(cls, config: StorageConfig) -> StorageBackend:
        """Create storage backend from storage configuration

        Args:
            config: Storage configuration

        Returns:
            Storage backend instance

        Raises:
            ValueError: If storage type is not supported
        """
        try:
            storage_type = StorageType(config.type)
        except ValueError:
            raise ValueError(f"Invalid storage type: {config.type}")

        if storage_type not in cls._backends:
            raise ValueError(f"Unsupported storage type: {storage_type.value}")

        backend_class = cls._backends[storage_type]
        return backend_class({"path": config.path})

    @classmethod
    def register_backend(cls, storage_type: StorageType, backend_class: Type[StorageBackend]):
        """Register a new storage backend type

        Args:
            storage_type: Storage type enum
            backend_class: Backend class
        """
        cls._backends[storage_type] = backend_class

    @classmethod
    def get_supported_types(cls) -> list:
        """Get list of supported storage type names"""
        return [st.value for st in cls._backends.keys()]

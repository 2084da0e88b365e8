"""
Adapters layer - Persistence collaborators (memory, JSON file, REST API).
"""

from ..config import StorageBackend, StorageConfig
from .http_store import HttpStore
from .json_file_store import JsonFileStore
from .memory_store import InMemoryStore


def build_store(storage_config: StorageConfig):
    """Create the store selected by the storage configuration."""
    if storage_config.backend is StorageBackend.HTTP:
        return HttpStore(api_url=storage_config.api_url, timeout=storage_config.timeout_seconds)
    if storage_config.backend is StorageBackend.JSON:
        return JsonFileStore(path=storage_config.path)
    return InMemoryStore()


__all__ = ["HttpStore", "InMemoryStore", "JsonFileStore", "build_store"]

"""
File access layer.

Unified interface over interchangeable storage providers:
- Remote workspace (cloud sessions over HTTP)
- Embedded runtime (workspace directory on disk)
- Local in-memory store (always available)

The manager lives in hybridfs.file_access.manager.
"""

from hybridfs.file_access.base import FileStorageProvider, ProviderName

__all__ = [
    "FileStorageProvider",
    "ProviderName",
]

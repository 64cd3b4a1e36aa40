# hybridfs/file_access/base.py
"""
Base interface for file storage providers.

Every provider in the fallback chain (remote workspace, embedded runtime,
in-memory local store) implements this interface. The manager only ever
talks to providers through it.
"""
import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union


class ProviderName(str, Enum):
    """Providers in fixed priority order."""
    REMOTE_CLOUD = "remote-cloud"
    EMBEDDED_RUNTIME = "embedded-runtime"
    LOCAL = "local"


class NodeKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass
class FileNode:
    """A file or directory held by a provider."""
    path: str
    content: str = ""
    is_binary: bool = False
    last_modified: datetime = field(default_factory=datetime.utcnow)
    kind: NodeKind = NodeKind.FILE

    @property
    def is_directory(self) -> bool:
        return self.kind is NodeKind.DIRECTORY


@dataclass
class FileStat:
    """Result of a stat() call."""
    is_file: bool
    is_directory: bool
    size: int


@dataclass
class UploadBlob:
    """
    A single uploaded file.

    `relative_path` is set for folder uploads (e.g. "project/src/main.py").
    """
    name: str
    content: Union[str, bytes]
    relative_path: Optional[str] = None

    def text(self) -> str:
        if isinstance(self.content, bytes):
            return self.content.decode("utf-8", errors="replace")
        return self.content


@dataclass
class HealthCheckResult:
    """Result of a health check."""
    healthy: bool
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)
    provider: Optional[str] = None
    latency_ms: Optional[float] = None


# (path, raw_matches) callback used by native text search primitives
NativeProgressCallback = Callable[[str, List[Dict[str, Any]]], Optional[Awaitable[None]]]


def normalize_path(path: str) -> str:
    """
    Normalize a path to the absolute, slash-separated form used as a key.

    "a//b/" -> "/a/b", "" -> "/"
    """
    if not path:
        return "/"
    normalized = posixpath.normpath("/" + path.replace("\\", "/").lstrip("/"))
    return normalized


def join_path(parent: str, name: str) -> str:
    return normalize_path(f"{parent}/{name}")


class FileStorageProvider(ABC):
    """
    Abstract base class for file storage providers.

    All methods are async. Providers raise the errors defined in
    hybridfs.file_access.errors; the manager does not translate them.
    """

    name: ProviderName

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize provider with configuration.

        Args:
            config: Provider-specific configuration
        """
        self.config = config or {}
        self._healthy = True

    @property
    def healthy(self) -> bool:
        """False once the provider has produced a protocol-level failure."""
        return self._healthy

    def mark_unhealthy(self) -> None:
        self._healthy = False

    def mark_healthy(self) -> None:
        """Clear the unhealthy flag after a clean connect."""
        self._healthy = True

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish the provider session.

        Raises:
            ConfigurationError: If a required credential is missing
            ProviderConnectionError: If the backend cannot be reached
            ProtocolError: If the backend answers with malformed data
        """

    async def disconnect(self) -> None:
        """Release the provider session. Default: nothing to release."""

    @abstractmethod
    async def read_file(self, path: str) -> str:
        """
        Read file contents as text.

        Raises:
            NotFoundError: If file doesn't exist
        """

    @abstractmethod
    async def write_file(self, path: str, content: str) -> None:
        """Write text to a file, creating parent directories as needed."""

    @abstractmethod
    async def readdir(self, path: str) -> List[str]:
        """
        List the names of the immediate children of a directory.

        Raises:
            NotFoundError: If directory doesn't exist
        """

    @abstractmethod
    async def mkdir(self, path: str, recursive: bool = False) -> None:
        """
        Create a directory.

        Args:
            path: Directory path
            recursive: If True, create parents as needed and ignore existing
        """

    @abstractmethod
    async def delete_file(self, path: str) -> None:
        """Delete a file."""

    @abstractmethod
    async def delete_directory(self, path: str, recursive: bool = False) -> None:
        """
        Remove a directory.

        Raises:
            NotEmptyError: If the directory has children and recursive=False
        """

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check if a file or directory exists."""

    @abstractmethod
    async def stat(self, path: str) -> FileStat:
        """
        Get information about a file or directory.

        Raises:
            NotFoundError: If path doesn't exist
        """

    @property
    def supports_native_search(self) -> bool:
        return False

    async def text_search(
        self,
        query: str,
        options: Dict[str, Any],
        on_progress: NativeProgressCallback,
    ) -> None:
        """
        Provider-native text search.

        Only providers reporting `supports_native_search` implement this.
        """
        raise NotImplementedError(f"{self.__class__.__name__} has no native text search")

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()
        return False

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} provider={self.name.value}>"

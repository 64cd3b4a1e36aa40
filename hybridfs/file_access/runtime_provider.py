# hybridfs/file_access/runtime_provider.py
"""
Embedded runtime provider.

Boots an embedded runtime and maps its filesystem primitives onto the
FileStorageProvider interface. The runtime has no stat(), so stat/exists
probe with readdir() first and read_file() second.
"""
import errno
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from hybridfs.file_access.base import (
    FileStat,
    FileStorageProvider,
    NativeProgressCallback,
    ProviderName,
    normalize_path,
)
from hybridfs.file_access.errors import (
    ConfigurationError,
    HybridFSError,
    NotEmptyError,
    NotFoundError,
    NotReadyError,
    ProviderConnectionError,
)
from hybridfs.integrations.embedded_runtime import DiskRuntime

logger = structlog.get_logger()

RuntimeFactory = Callable[[str], Awaitable[Any]]


@contextmanager
def _translate_errors(path: str):
    """Map raw runtime OSErrors onto the hybridfs error taxonomy."""
    try:
        yield
    except HybridFSError:
        raise
    except FileNotFoundError as e:
        raise NotFoundError(f"Not found: {path}") from e
    except OSError as e:
        if e.errno == errno.ENOTEMPTY:
            raise NotEmptyError(f"Directory not empty: {path}") from e
        raise


class EmbeddedRuntimeProvider(FileStorageProvider):
    """
    Embedded runtime provider.

    Config schema:
    {
        "root": "/var/lib/hybridfs/workspace"  # Required, runtime workspace directory
    }

    `runtime_factory` boots the runtime from the root; it defaults to
    DiskRuntime.boot and is injectable for other runtimes.
    """

    name = ProviderName.EMBEDDED_RUNTIME

    def __init__(
        self,
        config: Dict[str, Any],
        runtime_factory: Optional[RuntimeFactory] = None,
    ):
        super().__init__(config)
        self.root = config.get("root")
        self._runtime_factory = runtime_factory or DiskRuntime.boot
        self._runtime = None

    async def connect(self) -> None:
        """
        Boot the runtime.

        Raises:
            ConfigurationError: If no root is configured
            ProviderConnectionError: If the runtime fails to boot
        """
        if not self.root:
            raise ConfigurationError("Embedded runtime root not configured")

        try:
            logger.info("runtime_booting", root=self.root)
            self._runtime = await self._runtime_factory(self.root)
            logger.info("runtime_booted", root=self.root)
        except HybridFSError:
            raise
        except Exception as e:
            logger.error("runtime_boot_failed", root=self.root, error=str(e))
            raise ProviderConnectionError(f"Embedded runtime boot failed: {e}") from e

    async def disconnect(self) -> None:
        if self._runtime is not None:
            shutdown = getattr(self._runtime, "shutdown", None)
            if shutdown is not None:
                await shutdown()
            self._runtime = None
            logger.info("runtime_stopped", root=self.root)

    def _fs(self):
        if self._runtime is None:
            raise NotReadyError("Embedded runtime not booted")
        return self._runtime.fs

    async def read_file(self, path: str) -> str:
        path = normalize_path(path)
        with _translate_errors(path):
            return await self._fs().read_file(path, "utf-8")

    async def write_file(self, path: str, content: str) -> None:
        path = normalize_path(path)
        with _translate_errors(path):
            await self._fs().write_file(path, content)

    async def readdir(self, path: str) -> List[str]:
        path = normalize_path(path)
        with _translate_errors(path):
            return await self._fs().readdir(path)

    async def mkdir(self, path: str, recursive: bool = False) -> None:
        path = normalize_path(path)
        with _translate_errors(path):
            await self._fs().mkdir(path, recursive=recursive)

    async def delete_file(self, path: str) -> None:
        path = normalize_path(path)
        if (await self.stat(path)).is_directory:
            raise IsADirectoryError(f"Is a directory: {path}")
        with _translate_errors(path):
            await self._fs().rm(path)

    async def delete_directory(self, path: str, recursive: bool = False) -> None:
        path = normalize_path(path)
        with _translate_errors(path):
            await self._fs().rm(path, recursive=recursive)

    async def stat(self, path: str) -> FileStat:
        path = normalize_path(path)
        fs = self._fs()
        try:
            await fs.readdir(path)
            return FileStat(is_file=False, is_directory=True, size=0)
        except OSError:
            pass
        try:
            content = await fs.read_file(path, "utf-8")
        except UnicodeDecodeError:
            # binary file, size unknown through the text API
            return FileStat(is_file=True, is_directory=False, size=0)
        except OSError as e:
            raise NotFoundError(f"File not found: {path}") from e
        return FileStat(is_file=True, is_directory=False, size=len(content))

    async def exists(self, path: str) -> bool:
        try:
            await self.stat(path)
            return True
        except NotFoundError:
            return False

    @property
    def supports_native_search(self) -> bool:
        return self._runtime is not None and hasattr(self._runtime, "text_search")

    async def text_search(
        self,
        query: str,
        options: Dict[str, Any],
        on_progress: NativeProgressCallback,
    ) -> None:
        if self._runtime is None:
            raise NotReadyError("Embedded runtime not booted")
        await self._runtime.text_search(query, options, on_progress)

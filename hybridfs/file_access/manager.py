# hybridfs/file_access/manager.py
"""
Hybrid file manager.

Probes providers in fixed priority order (remote-cloud -> embedded-runtime ->
local), keeps the first one that connects, and forwards every storage
operation to it. Local cannot fail, so initialize() always ends READY.

The manager is an explicit service object: build one per process (see
create_manager), pass it to consumers, and close() it on shutdown.
"""
import asyncio
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Set

from hybridfs.config import Settings
from hybridfs.file_access.base import (
    FileNode,
    FileStat,
    FileStorageProvider,
    HealthCheckResult,
    ProviderName,
    UploadBlob,
    join_path,
    normalize_path,
)
from hybridfs.file_access.errors import (
    ConfigurationError,
    NotReadyError,
    ProtocolError,
)
from hybridfs.file_access.local_provider import LocalFileSystem
from hybridfs.file_access.registry import PRIORITY, build_provider_chain
from hybridfs.monitoring.context import set_request_context
from hybridfs.monitoring.health import ProviderStatus, StatusMonitor
from hybridfs.monitoring.logger import log


class ManagerState(str, Enum):
    UNINITIALIZED = "uninitialized"
    PROBING = "probing"
    READY = "ready"


class HybridFileManager:
    """
    Unified storage interface over the fallback chain.

    Usage:
        async with create_manager(settings) as manager:
            await manager.write_file("/notes.txt", "hello")
            print(manager.provider, manager.is_ready, manager.error)

    Operations never demote the active provider; only a new initialize()
    can select a different one.
    """

    def __init__(
        self,
        providers: Sequence[FileStorageProvider],
        init_timeout: float = 8.0,
        monitor: Optional[StatusMonitor] = None,
    ):
        providers = list(providers)
        ranks = [PRIORITY.index(p.name) for p in providers]
        if ranks != sorted(ranks) or len(set(ranks)) != len(ranks):
            raise ValueError(
                f"Providers must follow priority order {[n.value for n in PRIORITY]}, "
                f"got {[p.name.value for p in providers]}"
            )
        if not providers or providers[-1].name is not ProviderName.LOCAL:
            providers.append(LocalFileSystem())

        self._providers: List[FileStorageProvider] = providers
        self.init_timeout = init_timeout
        self.monitor = monitor or StatusMonitor()

        self._state = ManagerState.UNINITIALIZED
        self._probing: Optional[ProviderName] = None
        self._adapter: Optional[FileStorageProvider] = None
        self._abandoned: Set[asyncio.Future] = set()
        self._late_releases: Set[asyncio.Future] = set()
        self._init_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def state(self) -> ManagerState:
        return self._state

    @property
    def probing(self) -> Optional[ProviderName]:
        """Provider currently being attempted, while PROBING."""
        return self._probing if self._state is ManagerState.PROBING else None

    @property
    def provider(self) -> Optional[ProviderName]:
        return self.monitor.status.provider

    @property
    def is_ready(self) -> bool:
        return self._state is ManagerState.READY

    @property
    def error(self) -> Optional[str]:
        return self.monitor.status.error

    @property
    def status(self) -> ProviderStatus:
        return self.monitor.status

    @property
    def adapter(self) -> Optional[FileStorageProvider]:
        """The active provider, or None before initialize()."""
        return self._adapter

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> ProviderName:
        """
        Select the first provider in the chain that connects in time.

        Init failures never escape: each is recorded on the monitor and the
        next provider is tried.

        Returns:
            The name of the selected provider
        """
        async with self._init_lock:
            if self._adapter is not None:
                await self._release(self._adapter)
                self._adapter = None

            self._state = ManagerState.PROBING
            self.monitor.reset()
            log("INFO", "Initializing hybrid file manager", module="manager")

            for provider in self._providers:
                name = provider.name
                self._probing = name
                try:
                    await self._open(provider)

                except ConfigurationError as exc:
                    self.monitor.record_attempt(name, "skipped", str(exc))
                    log("INFO", f"{name.value} skipped: {exc}", module="manager", provider=name.value)
                    continue

                except asyncio.TimeoutError:
                    message = f"{name.value} did not connect within {self.init_timeout}s"
                    self.monitor.record_attempt(name, "timeout", message)
                    log("WARNING", message, module="manager", provider=name.value)
                    continue

                except ProtocolError as exc:
                    provider.mark_unhealthy()
                    self.monitor.record_attempt(name, "protocol_error", str(exc))
                    log("WARNING", f"{name.value} protocol error: {exc}", module="manager", provider=name.value)
                    await self._release(provider)
                    continue

                except Exception as exc:
                    # ProviderConnectionError and anything unexpected alike
                    self.monitor.record_attempt(name, "connection_error", str(exc))
                    log("WARNING", f"{name.value} not available: {exc}", module="manager", provider=name.value)
                    await self._release(provider)
                    continue

                provider.mark_healthy()
                return self._activate(provider)

            # Only reachable when a custom local provider misbehaves
            log("ERROR", "Every provider failed, using a fresh local store", module="manager")
            return self._activate(LocalFileSystem())

    def _activate(self, provider: FileStorageProvider) -> ProviderName:
        self._adapter = provider
        self._state = ManagerState.READY
        self._probing = None
        self.monitor.mark_ready(provider.name)
        set_request_context(provider=provider.name.value)
        log("INFO", f"Hybrid file manager initialized with provider: {provider.name.value}",
            module="manager", provider=provider.name.value)
        return provider.name

    async def _open(self, provider: FileStorageProvider) -> None:
        """Connect and probe one provider, bounded by init_timeout."""

        async def _connect_and_probe():
            await provider.connect()
            await provider.readdir("/")

        task = asyncio.ensure_future(_connect_and_probe())
        try:
            done, _ = await asyncio.wait({task}, timeout=self.init_timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if task in done:
            task.result()
            return

        # Lost the race: the outcome is ignored, but a late connect is torn down
        self._abandoned.add(task)
        task.add_done_callback(lambda settled: self._discard_abandoned(provider, settled))
        raise asyncio.TimeoutError()

    def _discard_abandoned(self, provider: FileStorageProvider, task: asyncio.Future) -> None:
        self._abandoned.discard(task)
        if task.cancelled() or task.exception() is not None:
            return
        if provider is self._adapter:
            return
        log("INFO", f"{provider.name.value} connected after timeout, disconnecting",
            module="manager", provider=provider.name.value)
        release = asyncio.ensure_future(self._release(provider))
        self._late_releases.add(release)
        release.add_done_callback(self._late_releases.discard)

    async def _release(self, provider: FileStorageProvider) -> None:
        try:
            await provider.disconnect()
        except Exception as exc:
            log("WARNING", f"Failed to disconnect {provider.name.value}: {exc}", module="manager")

    async def close(self) -> None:
        """Disconnect the active provider and drop abandoned connect attempts."""
        for task in list(self._abandoned):
            task.cancel()
        self._abandoned.clear()
        if self._late_releases:
            await asyncio.gather(*self._late_releases)

        if self._adapter is not None:
            await self._release(self._adapter)
            self._adapter = None

        self._state = ManagerState.UNINITIALIZED
        self._probing = None
        self.monitor.reset()
        log("INFO", "Hybrid file manager closed", module="manager")

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    # ------------------------------------------------------------------
    # File operations
    # ------------------------------------------------------------------

    def _require_ready(self) -> FileStorageProvider:
        if self._state is not ManagerState.READY or self._adapter is None:
            raise NotReadyError("File manager not ready")
        return self._adapter

    def _trace(self, operation: str, path: str, **kwargs) -> None:
        provider = self.provider.value if self.provider else None
        log("DEBUG", f"{operation} {path}", module="manager", provider=provider, **kwargs)

    async def read_file(self, path: str) -> str:
        adapter = self._require_ready()
        self._trace("read_file", path)
        return await adapter.read_file(path)

    async def write_file(self, path: str, content: str) -> None:
        adapter = self._require_ready()
        self._trace("write_file", path, size=len(content))
        await adapter.write_file(path, content)

    async def readdir(self, path: str) -> List[str]:
        adapter = self._require_ready()
        self._trace("readdir", path)
        return await adapter.readdir(path)

    async def mkdir(self, path: str, recursive: bool = False) -> None:
        adapter = self._require_ready()
        self._trace("mkdir", path, recursive=recursive)
        await adapter.mkdir(path, recursive=recursive)

    async def delete_file(self, path: str) -> None:
        adapter = self._require_ready()
        self._trace("delete_file", path)
        await adapter.delete_file(path)

    async def delete_directory(self, path: str, recursive: bool = False) -> None:
        adapter = self._require_ready()
        self._trace("delete_directory", path, recursive=recursive)
        await adapter.delete_directory(path, recursive=recursive)

    async def exists(self, path: str) -> bool:
        adapter = self._require_ready()
        self._trace("exists", path)
        return await adapter.exists(path)

    async def stat(self, path: str) -> FileStat:
        adapter = self._require_ready()
        self._trace("stat", path)
        return await adapter.stat(path)

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    async def upload_files(self, files: Iterable[UploadBlob]) -> List[str]:
        """
        Write each blob to /<name>, one after another.

        Returns:
            Paths written, in upload order
        """
        self._require_ready()
        written = []
        for blob in files:
            path = normalize_path(blob.name)
            await self.write_file(path, blob.text())
            written.append(path)
        log("INFO", f"Uploaded {len(written)} files", module="manager")
        return written

    async def upload_folder(self, files: Iterable[UploadBlob]) -> List[str]:
        """
        Write each blob to /<relative_path>, or /<name> when it has none.

        Returns:
            Paths written, in upload order
        """
        self._require_ready()
        written = []
        for blob in files:
            path = normalize_path(blob.relative_path or blob.name)
            await self.write_file(path, blob.text())
            written.append(path)
        log("INFO", f"Uploaded folder with {len(written)} files", module="manager")
        return written

    # ------------------------------------------------------------------
    # Health and traversal
    # ------------------------------------------------------------------

    async def health_report(self) -> HealthCheckResult:
        return await self.monitor.check(self._adapter)

    async def health_check(self) -> bool:
        """Liveness of the active provider. Never re-selects a provider."""
        return (await self.health_report()).healthy

    async def get_file_tree(self, root: str = "/") -> List[FileNode]:
        """
        Collect every file under root, depth-first.

        Entries that cannot be listed, stat'ed or read are logged and skipped.
        """
        files: List[FileNode] = []

        async def traverse(path: str) -> None:
            try:
                entries = await self.readdir(path)
            except Exception as exc:
                log("WARNING", f"Cannot read directory {path}: {exc}", module="manager")
                return

            for entry in entries:
                full_path = join_path(path, entry)
                try:
                    info = await self.stat(full_path)
                    if info.is_directory:
                        await traverse(full_path)
                    elif info.is_file:
                        files.append(FileNode(path=full_path, content=await self.read_file(full_path)))
                except NotReadyError:
                    raise
                except Exception as exc:
                    log("WARNING", f"Cannot access {full_path}: {exc}", module="manager")

        await traverse(normalize_path(root))
        return files


def create_manager(settings: Settings) -> HybridFileManager:
    """Build a manager over the provider chain described by settings."""
    return HybridFileManager(
        build_provider_chain(settings),
        init_timeout=settings.PROVIDER_INIT_TIMEOUT,
    )

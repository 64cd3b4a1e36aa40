import asyncio
from typing import Dict, List, Optional

import pytest

from hybridfs.config import Settings
from hybridfs.file_access.base import FileStat, FileStorageProvider, ProviderName
from hybridfs.file_access.local_provider import LocalFileSystem


class FakeProvider(FileStorageProvider):
    """
    Scriptable provider for chain tests. Storage is delegated to an
    in-memory LocalFileSystem; connect() behaviour is controlled by flags.
    """

    def __init__(
        self,
        name: ProviderName,
        connect_error: Optional[BaseException] = None,
        connect_delay: Optional[float] = None,
        hang: bool = False,
        files: Optional[Dict[str, str]] = None,
    ):
        super().__init__({})
        self.name = name
        self.connect_error = connect_error
        self.connect_delay = connect_delay
        self.hang = hang
        self.release = asyncio.Event()
        self.connected = False
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.fail_readdir: Optional[BaseException] = None
        self.store = LocalFileSystem(files=files or {})

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.hang:
            await self.release.wait()
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.connected = False

    async def read_file(self, path: str) -> str:
        return await self.store.read_file(path)

    async def write_file(self, path: str, content: str) -> None:
        await self.store.write_file(path, content)

    async def readdir(self, path: str) -> List[str]:
        if self.fail_readdir is not None:
            raise self.fail_readdir
        return await self.store.readdir(path)

    async def mkdir(self, path: str, recursive: bool = False) -> None:
        await self.store.mkdir(path, recursive=recursive)

    async def delete_file(self, path: str) -> None:
        await self.store.delete_file(path)

    async def delete_directory(self, path: str, recursive: bool = False) -> None:
        await self.store.delete_directory(path, recursive=recursive)

    async def exists(self, path: str) -> bool:
        return await self.store.exists(path)

    async def stat(self, path: str) -> FileStat:
        return await self.store.stat(path)


@pytest.fixture
def make_provider():
    """Factory for FakeProvider instances."""
    return FakeProvider


@pytest.fixture
def local_fs():
    """Empty in-memory local store (no scaffold)."""
    return LocalFileSystem(files={})


@pytest.fixture
def bare_settings():
    """Settings with no remote key and no runtime root, ignoring any .env file."""
    return Settings(
        _env_file=None,
        WORKSPACE_API_KEY=None,
        RUNTIME_ROOT=None,
        PROVIDER_INIT_TIMEOUT=1.0,
        LOCAL_SCAFFOLD=True,
    )

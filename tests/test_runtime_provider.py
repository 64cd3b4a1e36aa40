# tests/test_runtime_provider.py
"""
Tests for the embedded runtime provider over a DiskRuntime in tmp_path.
"""
import pytest

from hybridfs.file_access.errors import (
    ConfigurationError,
    NotEmptyError,
    NotFoundError,
    NotReadyError,
    ProviderConnectionError,
)
from hybridfs.file_access.runtime_provider import EmbeddedRuntimeProvider
from hybridfs.integrations.embedded_runtime import DiskRuntime


@pytest.fixture
def provider(tmp_path):
    return EmbeddedRuntimeProvider({"root": str(tmp_path / "workspace")})


class TestConnect:

    @pytest.mark.asyncio
    async def test_missing_root_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            await EmbeddedRuntimeProvider({}).connect()

    @pytest.mark.asyncio
    async def test_boot_creates_workspace(self, provider, tmp_path):
        await provider.connect()
        assert (tmp_path / "workspace").is_dir()
        assert await provider.readdir("/") == []

    @pytest.mark.asyncio
    async def test_boot_failure_is_a_connection_error(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(ProviderConnectionError):
            await EmbeddedRuntimeProvider({"root": str(blocker)}).connect()

    @pytest.mark.asyncio
    async def test_custom_runtime_factory(self, tmp_path):
        booted = []

        async def factory(root):
            booted.append(root)
            return await DiskRuntime.boot(root)

        provider = EmbeddedRuntimeProvider({"root": str(tmp_path)}, runtime_factory=factory)
        await provider.connect()
        assert booted == [str(tmp_path)]

    @pytest.mark.asyncio
    async def test_operations_before_connect(self, provider):
        with pytest.raises(NotReadyError):
            await provider.read_file("/a.txt")
        assert provider.supports_native_search is False

    @pytest.mark.asyncio
    async def test_disconnect(self, provider):
        await provider.connect()
        await provider.disconnect()
        with pytest.raises(NotReadyError):
            await provider.readdir("/")


class TestFileOperations:

    @pytest.mark.asyncio
    async def test_write_and_read(self, provider, tmp_path):
        await provider.connect()
        await provider.write_file("/src/main.py", "print('hi')")
        assert await provider.read_file("/src/main.py") == "print('hi')"
        assert (tmp_path / "workspace" / "src" / "main.py").read_text() == "print('hi')"

    @pytest.mark.asyncio
    async def test_stat_and_exists(self, provider):
        await provider.connect()
        await provider.write_file("/dir/a.txt", "abc")

        file_info = await provider.stat("/dir/a.txt")
        assert (file_info.is_file, file_info.is_directory, file_info.size) == (True, False, 3)
        dir_info = await provider.stat("/dir")
        assert (dir_info.is_file, dir_info.is_directory) == (False, True)

        assert await provider.exists("/dir/a.txt") is True
        assert await provider.exists("/dir/missing.txt") is False
        with pytest.raises(NotFoundError):
            await provider.stat("/dir/missing.txt")

    @pytest.mark.asyncio
    async def test_binary_file_stat(self, provider, tmp_path):
        await provider.connect()
        (tmp_path / "workspace" / "blob.bin").write_bytes(b"\xff\xfe\x00\x80")
        info = await provider.stat("/blob.bin")
        assert info.is_file is True

    @pytest.mark.asyncio
    async def test_missing_file(self, provider):
        await provider.connect()
        with pytest.raises(NotFoundError):
            await provider.read_file("/missing.txt")
        with pytest.raises(NotFoundError):
            await provider.delete_file("/missing.txt")

    @pytest.mark.asyncio
    async def test_mkdir(self, provider):
        await provider.connect()
        await provider.mkdir("/a/b/c", recursive=True)
        await provider.mkdir("/a/b/c", recursive=True)
        assert await provider.readdir("/a/b") == ["c"]
        with pytest.raises(NotFoundError):
            await provider.mkdir("/x/y")

    @pytest.mark.asyncio
    async def test_delete_directory(self, provider):
        await provider.connect()
        await provider.write_file("/d/one.txt", "1")
        await provider.write_file("/d/sub/two.txt", "2")

        with pytest.raises(NotEmptyError):
            await provider.delete_directory("/d")

        await provider.delete_directory("/d", recursive=True)
        assert await provider.exists("/d") is False

    @pytest.mark.asyncio
    async def test_delete_file(self, provider):
        await provider.connect()
        await provider.write_file("/a.txt", "x")
        await provider.delete_file("/a.txt")
        assert await provider.readdir("/") == []

    @pytest.mark.asyncio
    async def test_delete_file_refuses_directories(self, provider, tmp_path):
        await provider.connect()
        await provider.mkdir("/empty")

        with pytest.raises(IsADirectoryError):
            await provider.delete_file("/empty")
        assert (tmp_path / "workspace" / "empty").is_dir()

    @pytest.mark.asyncio
    async def test_paths_cannot_escape_root(self, tmp_path):
        runtime = await DiskRuntime.boot(str(tmp_path / "workspace"))
        with pytest.raises(PermissionError):
            runtime.fs.resolve("/../outside.txt")


class TestNativeSearch:

    @pytest.mark.asyncio
    async def test_text_search_reports_raw_ranges(self, provider):
        await provider.connect()
        await provider.write_file("/a.txt", "one\ntwo needle needle\nthree")
        assert provider.supports_native_search is True

        calls = []
        await provider.text_search("needle", {"folders": ["/"]}, lambda path, m: calls.append((path, m)))

        [(path, matches)] = calls
        assert path == "/a.txt"
        [match] = matches
        assert match["preview"] == {"text": "one\ntwo needle needle", "startLineNumber": 0}
        assert match["ranges"] == [
            {"startLineNumber": 1, "startColumn": 4, "endColumn": 10},
            {"startLineNumber": 1, "startColumn": 11, "endColumn": 17},
        ]

    @pytest.mark.asyncio
    async def test_text_search_respects_gitignore(self, provider):
        await provider.connect()
        await provider.write_file("/.gitignore", "build/\n")
        await provider.write_file("/build/out.txt", "needle")
        await provider.write_file("/src/in.txt", "needle")

        paths = []
        await provider.text_search("needle", {"folders": ["/"]}, lambda path, m: paths.append(path))
        assert paths == ["/src/in.txt"]

    @pytest.mark.asyncio
    async def test_text_search_invalid_pattern(self, provider):
        await provider.connect()
        with pytest.raises(ValueError):
            await provider.text_search("(", {"is_regex": True}, lambda path, m: None)

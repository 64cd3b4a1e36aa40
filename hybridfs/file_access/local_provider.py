# hybridfs/file_access/local_provider.py
"""
In-memory local provider.

Terminal member of the fallback chain: it has no external dependencies, so
connect() cannot fail. Contents live only as long as the provider object.
"""
import json
from typing import Any, Dict, List, Optional

from hybridfs.file_access.base import (
    FileNode,
    FileStat,
    FileStorageProvider,
    NodeKind,
    ProviderName,
    normalize_path,
)
from hybridfs.file_access.errors import NotEmptyError, NotFoundError
from hybridfs.monitoring.logger import log


DEFAULT_SCAFFOLD: Dict[str, str] = {
    "/package.json": json.dumps(
        {
            "name": "hybridfs-project",
            "version": "1.0.0",
            "description": "Local development project",
            "scripts": {
                "dev": "vite",
                "build": "vite build",
                "preview": "vite preview",
            },
        },
        indent=2,
    ),
    "/README.md": "# Project\n\nThis is a local development project with hybrid file management.",
    "/src/App.tsx": (
        "import React from 'react'\n"
        "\n"
        "function App() {\n"
        "  return (\n"
        "    <div>\n"
        "      <h1>Hello from Bolt!</h1>\n"
        "      <p>This is a local development environment with hybrid file management.</p>\n"
        "    </div>\n"
        "  )\n"
        "}\n"
        "\n"
        "export default App"
    ),
}


class LocalFileSystem(FileStorageProvider):
    """
    In-memory path -> FileNode store.

    Config schema:
    {
        "scaffold": true  # Optional, seed DEFAULT_SCAFFOLD (default: true)
    }

    Alternatively pass `files` to seed an explicit {path: content} mapping.
    The root "/" always exists and is never stored as a node.
    """

    name = ProviderName.LOCAL

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, str]] = None,
    ):
        super().__init__(config)
        self._files: Dict[str, FileNode] = {}

        if files is None and self.config.get("scaffold", True):
            files = DEFAULT_SCAFFOLD
        for path, content in (files or {}).items():
            self._put_file(normalize_path(path), content)

        log("DEBUG", f"LocalFileSystem seeded with {len(self._files)} nodes",
            module="local_provider")

    def _put_file(self, path: str, content: str) -> None:
        parent = path.rsplit("/", 1)[0] or "/"
        self._ensure_directories(parent)
        existing = self._files.get(path)
        if existing is not None and existing.is_directory:
            raise IsADirectoryError(f"Is a directory: {path}")
        self._files[path] = FileNode(path=path, content=content, kind=NodeKind.FILE)

    def _ensure_directories(self, path: str) -> None:
        """Materialize every missing segment of `path` as a directory node."""
        current = ""
        for part in [p for p in path.split("/") if p]:
            current = f"{current}/{part}"
            node = self._files.get(current)
            if node is None:
                self._files[current] = FileNode(path=current, kind=NodeKind.DIRECTORY)
            elif not node.is_directory:
                raise NotADirectoryError(f"Not a directory: {current}")

    def _is_directory(self, path: str) -> bool:
        if path == "/":
            return True
        node = self._files.get(path)
        return node is not None and node.is_directory

    def _children(self, path: str) -> List[str]:
        prefix = "/" if path == "/" else path + "/"
        entries = []
        for file_path in self._files:
            if file_path.startswith(prefix) and file_path != path:
                relative = file_path[len(prefix):]
                if "/" not in relative:
                    entries.append(relative)
        return entries

    async def connect(self) -> None:
        """Nothing to connect to."""

    async def read_file(self, path: str) -> str:
        path = normalize_path(path)
        node = self._files.get(path)
        if node is None:
            raise NotFoundError(f"File not found: {path}")
        if node.is_directory:
            raise IsADirectoryError(f"Is a directory: {path}")
        return node.content

    async def write_file(self, path: str, content: str) -> None:
        self._put_file(normalize_path(path), content)

    async def readdir(self, path: str) -> List[str]:
        path = normalize_path(path)
        if not self._is_directory(path):
            if path in self._files:
                raise NotADirectoryError(f"Not a directory: {path}")
            raise NotFoundError(f"Directory not found: {path}")
        return self._children(path)

    async def mkdir(self, path: str, recursive: bool = False) -> None:
        path = normalize_path(path)
        if path == "/" or path in self._files:
            if recursive and self._is_directory(path):
                return
            raise FileExistsError(f"Directory already exists: {path}")

        if recursive:
            self._ensure_directories(path)
            return

        parent = path.rsplit("/", 1)[0] or "/"
        if not self._is_directory(parent):
            raise NotFoundError(f"Parent directory not found: {parent}")
        self._files[path] = FileNode(path=path, kind=NodeKind.DIRECTORY)

    async def delete_file(self, path: str) -> None:
        path = normalize_path(path)
        node = self._files.get(path)
        if node is None:
            raise NotFoundError(f"File not found: {path}")
        if node.is_directory:
            raise IsADirectoryError(f"Is a directory: {path}")
        del self._files[path]

    async def delete_directory(self, path: str, recursive: bool = False) -> None:
        path = normalize_path(path)
        if path == "/":
            raise PermissionError("Refusing to delete the root directory")
        node = self._files.get(path)
        if node is None:
            raise NotFoundError(f"Directory not found: {path}")
        if not node.is_directory:
            raise NotADirectoryError(f"Not a directory: {path}")

        if not recursive and self._children(path):
            raise NotEmptyError(f"Directory not empty: {path}")

        del self._files[path]
        if recursive:
            prefix = path + "/"
            for file_path in [p for p in self._files if p.startswith(prefix)]:
                del self._files[file_path]

    async def exists(self, path: str) -> bool:
        path = normalize_path(path)
        return path == "/" or path in self._files

    async def stat(self, path: str) -> FileStat:
        path = normalize_path(path)
        if path == "/":
            return FileStat(is_file=False, is_directory=True, size=0)
        node = self._files.get(path)
        if node is None:
            raise NotFoundError(f"File not found: {path}")
        return FileStat(
            is_file=not node.is_directory,
            is_directory=node.is_directory,
            size=len(node.content),
        )

    def get_node(self, path: str) -> Optional[FileNode]:
        return self._files.get(normalize_path(path))

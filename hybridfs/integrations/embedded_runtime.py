"""hybridfs/integrations/embedded_runtime.py
Embedded runtime backed by a workspace directory on disk.

The runtime exposes the raw primitives consumed by EmbeddedRuntimeProvider:

- `runtime.fs`: read_file, write_file, readdir, mkdir, rm
- `runtime.text_search(query, options, on_progress)`: native search that
  reports raw 0-based ranges plus a preview window per matching line

Paths are runtime-absolute ("/src/app.py") and must stay inside the root.
Errors are plain OSError subclasses, as a filesystem would raise them.
"""
from __future__ import annotations

import asyncio
import fnmatch
import re
import shutil
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiofiles
import aiofiles.os

from hybridfs.monitoring.logger import log

# Lines of context shown before the matching line in a preview window
PREVIEW_CONTEXT_LINES = 1
ALWAYS_IGNORED = {".git"}

ProgressCallback = Callable[[str, List[Dict[str, Any]]], Optional[Awaitable[None]]]


class RuntimeFS:
    """Filesystem primitives rooted at the runtime's workspace directory."""

    def __init__(self, root: Path):
        self.root = root

    def resolve(self, path: str) -> Path:
        """Resolve runtime-absolute path to a host path within root."""
        resolved = (self.root / path.lstrip("/")).resolve()

        # Security check: ensure resolved path is within root
        try:
            resolved.relative_to(self.root)
        except ValueError:
            raise PermissionError(f"Access denied: path '{path}' is outside the runtime root")

        return resolved

    async def read_file(self, path: str, encoding: str = "utf-8") -> str:
        async with aiofiles.open(self.resolve(path), "r", encoding=encoding) as f:
            return await f.read()

    async def write_file(self, path: str, content: str) -> None:
        resolved = self.resolve(path)
        await aiofiles.os.makedirs(resolved.parent, exist_ok=True)
        async with aiofiles.open(resolved, "w", encoding="utf-8") as f:
            await f.write(content)

    async def readdir(self, path: str) -> List[str]:
        return sorted(await aiofiles.os.listdir(self.resolve(path)))

    async def mkdir(self, path: str, recursive: bool = False) -> None:
        resolved = self.resolve(path)
        if recursive:
            await aiofiles.os.makedirs(resolved, exist_ok=True)
        else:
            await aiofiles.os.mkdir(resolved)

    async def rm(self, path: str, recursive: bool = False) -> None:
        resolved = self.resolve(path)
        if resolved == self.root:
            raise PermissionError("Refusing to remove the runtime root")
        if not await aiofiles.os.path.isdir(resolved):
            await aiofiles.os.remove(resolved)
        elif recursive:
            # shutil is synchronous, run in executor
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, shutil.rmtree, resolved)
        else:
            await aiofiles.os.rmdir(resolved)


class DiskRuntime:
    """
    A booted runtime instance.

    Usage:
        runtime = await DiskRuntime.boot("/var/lib/hybridfs/workspace")
        await runtime.fs.write_file("/hello.txt", "hi")
        await runtime.text_search("hi", {"folders": ["/"]}, on_progress)
    """

    def __init__(self, root: Path):
        self.root = root
        self.fs = RuntimeFS(root)

    @classmethod
    async def boot(cls, root: str) -> "DiskRuntime":
        """
        Prepare the workspace directory and return a runtime bound to it.

        Raises:
            NotADirectoryError: If root exists and is not a directory
            PermissionError: If root cannot be created or accessed
        """
        path = Path(root).expanduser().resolve()
        await aiofiles.os.makedirs(path, exist_ok=True)
        if not await aiofiles.os.path.isdir(path):
            raise NotADirectoryError(f"Runtime root is not a directory: {path}")
        log("INFO", f"Embedded runtime booted at {path}", module="embedded_runtime")
        return cls(path)

    async def shutdown(self) -> None:
        log("INFO", "Embedded runtime shut down", module="embedded_runtime")

    async def _ignore_patterns(self, use_gitignore: bool) -> List[str]:
        patterns = list(ALWAYS_IGNORED)
        if not use_gitignore:
            return patterns
        gitignore = self.root / ".gitignore"
        if await aiofiles.os.path.isfile(gitignore):
            async with aiofiles.open(gitignore, "r", encoding="utf-8") as f:
                for line in (await f.read()).splitlines():
                    line = line.strip()
                    if line and not line.startswith("#"):
                        patterns.append(line.rstrip("/"))
        return patterns

    async def text_search(
        self,
        query: str,
        options: Dict[str, Any],
        on_progress: ProgressCallback,
    ) -> None:
        """
        Search file contents under `options["folders"]`.

        Options: folders, includes, excludes (regexes over the runtime path),
        gitignore, is_regex, case_sensitive, is_word_match, result_limit.

        For each file with matches, calls `on_progress(path, matches)` where
        each match is
            {"preview": {"text": str, "startLineNumber": int},
             "ranges": [{"startLineNumber": int, "startColumn": int, "endColumn": int}]}
        with 0-based line numbers and columns.

        Raises:
            ValueError: If the query or a filter is not a valid pattern
        """
        source = query if options.get("is_regex") else re.escape(query)
        if options.get("is_word_match"):
            source = rf"\b(?:{source})\b"
        flags = 0 if options.get("case_sensitive") else re.IGNORECASE
        try:
            regex = re.compile(source, flags)
            includes = [re.compile(p) for p in options.get("includes") or []]
            excludes = [re.compile(p) for p in options.get("excludes") or []]
        except re.error as exc:
            raise ValueError(f"Invalid search pattern: {exc}") from exc

        limit = options.get("result_limit")
        ignored = await self._ignore_patterns(options.get("gitignore", True))
        state = {"reported": 0}

        async def visit(path: str) -> bool:
            """Return False once the result limit is reached."""
            for name in await self.fs.readdir(path):
                if any(fnmatch.fnmatch(name, pattern) for pattern in ignored):
                    continue
                child = f"{path.rstrip('/')}/{name}"
                if await aiofiles.os.path.isdir(self.fs.resolve(child)):
                    if not await visit(child):
                        return False
                    continue
                if any(p.search(child) for p in excludes):
                    continue
                if includes and not any(p.search(child) for p in includes):
                    continue
                remaining = None if limit is None else limit - state["reported"]
                matches = await self._search_file(child, regex, remaining)
                if matches:
                    state["reported"] += sum(len(m["ranges"]) for m in matches)
                    result = on_progress(child, matches)
                    if asyncio.iscoroutine(result):
                        await result
                if limit is not None and state["reported"] >= limit:
                    return False
            return True

        for folder in options.get("folders") or ["/"]:
            if not await visit(folder):
                break

    async def _search_file(self, path: str, regex: re.Pattern, remaining: Optional[int]) -> List[Dict[str, Any]]:
        if remaining is not None and remaining <= 0:
            return []
        try:
            content = await self.fs.read_file(path)
        except (UnicodeDecodeError, OSError):
            # binary or unreadable files are not searchable
            return []

        lines = content.split("\n")
        matches: List[Dict[str, Any]] = []
        for index, line in enumerate(lines):
            ranges = [
                {"startLineNumber": index, "startColumn": m.start(), "endColumn": m.end()}
                for m in regex.finditer(line)
            ]
            if not ranges:
                continue
            if remaining is not None:
                ranges = ranges[:remaining]
                remaining -= len(ranges)
            preview_start = max(0, index - PREVIEW_CONTEXT_LINES)
            matches.append({
                "preview": {
                    "text": "\n".join(lines[preview_start:index + 1]),
                    "startLineNumber": preview_start,
                },
                "ranges": ranges,
            })
            if remaining is not None and remaining <= 0:
                break
        return matches

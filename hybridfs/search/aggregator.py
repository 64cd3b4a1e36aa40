# hybridfs/search/aggregator.py
"""
Search aggregator.

Runs a text search against the manager's active provider, using the
provider's native search when it has one and is healthy, and a sequential
walk over the unified file operations otherwise. Both strategies produce
the same stream of per-file FileBatch objects.

Usage:
    aggregator = SearchAggregator(manager)
    async for batch in aggregator.iter_batches("TODO", SearchOptions()):
        ...
    # or, callback style
    await aggregator.search("TODO", SearchOptions(), on_batch)
"""
import asyncio
import inspect
import re
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Set

from hybridfs.file_access.base import join_path, normalize_path
from hybridfs.file_access.errors import NotReadyError, SearchPatternError
from hybridfs.file_access.manager import HybridFileManager
from hybridfs.monitoring.logger import log
from hybridfs.search.matching import build_line_matcher, compile_path_pattern, scan_content
from hybridfs.search.models import FileBatch, SearchMatch, SearchOptions

BatchCallback = Callable[[str, List[SearchMatch]], Any]


def reconcile_native_matches(path: str, raw_matches: List[Dict[str, Any]]) -> List[SearchMatch]:
    """
    Turn raw native results into SearchMatch objects.

    Native results carry 0-based ranges and a preview window that may start
    before the matching line. The matching line is located inside the preview
    from the preview's own start line, falling back to its first line when
    that lands outside the window.
    """
    matches = []
    for raw in raw_matches:
        preview = raw.get("preview") or {}
        preview_lines = (preview.get("text") or "").split("\n")
        preview_start = preview.get("startLineNumber", 0)

        ranges = raw.get("ranges") or []
        if isinstance(ranges, dict):
            ranges = [ranges]

        for match_range in ranges:
            line = match_range["startLineNumber"]
            offset = line - preview_start
            preview_text = preview_lines[offset] if 0 <= offset < len(preview_lines) else preview_lines[0]
            matches.append(SearchMatch(
                path=path,
                line_number=line + 1,
                preview_text=preview_text,
                match_char_start=match_range["startColumn"],
                match_char_end=match_range["endColumn"],
            ))

    matches.sort(key=lambda m: (m.line_number, m.match_char_start))
    return matches


class _ResultBudget:
    """Caps the total number of matches emitted across batches."""

    def __init__(self, limit: Optional[int]):
        self.remaining = limit

    @property
    def exhausted(self) -> bool:
        return self.remaining is not None and self.remaining <= 0

    def take(self, batch: FileBatch) -> FileBatch:
        if self.remaining is None:
            return batch
        batch = FileBatch(path=batch.path, matches=batch.matches[:self.remaining])
        self.remaining -= len(batch.matches)
        return batch


class SearchAggregator:
    def __init__(self, manager: HybridFileManager):
        self.manager = manager

    async def _use_native(self) -> bool:
        adapter = self.manager.adapter
        if adapter is None or not adapter.supports_native_search:
            return False
        report = await self.manager.health_report()
        if not report.healthy:
            log("WARNING", f"Native search unavailable ({report.message}), using walk-based search",
                module="search", provider=report.provider)
            return False
        return True

    async def iter_batches(
        self,
        query: str,
        options: Optional[SearchOptions] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[FileBatch]:
        """
        Lazily yield one FileBatch per file with matches.

        The stream is single-pass. Setting `cancel` stops it at the next file
        boundary; so does simply not consuming further batches.

        Raises:
            NotReadyError: If the manager has not been initialized
            SearchPatternError: If include/exclude patterns are invalid
        """
        options = options or SearchOptions()
        if not query:
            return
        if not self.manager.is_ready:
            raise NotReadyError("File manager not ready")

        include = compile_path_pattern(options.include_pattern, "include")
        exclude = compile_path_pattern(options.exclude_pattern, "exclude")
        budget = _ResultBudget(options.max_results)
        emitted: Set[str] = set()

        if await self._use_native():
            native = self._native_batches(query, options, cancel)
            try:
                async for batch in native:
                    batch = budget.take(batch)
                    if batch.matches:
                        emitted.add(batch.path)
                        yield batch
                    if budget.exhausted:
                        return
                return
            except SearchPatternError:
                raise
            except Exception as exc:
                if await self.manager.health_check():
                    raise
                log("WARNING", f"Native search failed on unhealthy provider, continuing with walk: {exc}",
                    module="search")
            finally:
                await native.aclose()

        walk = self._walk_batches(query, options, include, exclude, cancel, emitted)
        try:
            async for batch in walk:
                batch = budget.take(batch)
                if batch.matches:
                    yield batch
                if budget.exhausted:
                    return
        finally:
            await walk.aclose()

    async def search(
        self,
        query: str,
        options: Optional[SearchOptions] = None,
        on_batch: Optional[BatchCallback] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> int:
        """
        Run a search to completion, calling on_batch(path, matches) per file.

        Returns:
            Total number of matches delivered
        """
        total = 0
        files = 0
        async for batch in self.iter_batches(query, options, cancel):
            total += len(batch.matches)
            files += 1
            if on_batch is not None:
                result = on_batch(batch.path, batch.matches)
                if inspect.isawaitable(result):
                    await result
        log("INFO", f"Search '{query}' found {total} matches in {files} files", module="search")
        return total

    async def _native_batches(
        self,
        query: str,
        options: SearchOptions,
        cancel: Optional[asyncio.Event],
    ) -> AsyncIterator[FileBatch]:
        adapter = self.manager.adapter
        queue: asyncio.Queue = asyncio.Queue()
        finished = object()

        def on_progress(path: str, raw_matches: List[Dict[str, Any]]) -> None:
            queue.put_nowait(FileBatch(path=path, matches=reconcile_native_matches(path, raw_matches)))

        native_options = {
            "folders": [normalize_path(f) for f in options.folders],
            "includes": [options.include_pattern] if options.include_pattern else [],
            "excludes": [options.exclude_pattern] if options.exclude_pattern else [],
            "gitignore": True,
            "is_regex": options.use_regexp,
            "case_sensitive": options.case_sensitive,
            "is_word_match": options.whole_word,
            "result_limit": options.max_results,
        }

        async def run() -> None:
            try:
                await adapter.text_search(query, native_options, on_progress)
            except ValueError as exc:
                raise SearchPatternError(str(exc)) from exc
            finally:
                queue.put_nowait(finished)

        task = asyncio.ensure_future(run())
        try:
            while True:
                if cancel is not None and cancel.is_set():
                    return
                item = await queue.get()
                if item is finished:
                    break
                if item.matches:
                    yield item
            await task
        finally:
            if not task.done():
                task.cancel()

    async def _walk_batches(
        self,
        query: str,
        options: SearchOptions,
        include: Optional[re.Pattern],
        exclude: Optional[re.Pattern],
        cancel: Optional[asyncio.Event],
        skip: Set[str],
    ) -> AsyncIterator[FileBatch]:
        try:
            matcher = build_line_matcher(query, options)
            pattern_error = None
        except SearchPatternError as exc:
            matcher = None
            pattern_error = exc

        seen: Set[str] = set(skip)

        def cancelled() -> bool:
            return cancel is not None and cancel.is_set()

        async def visit(path: str) -> AsyncIterator[FileBatch]:
            try:
                entries = await self.manager.readdir(path)
            except NotReadyError:
                raise
            except Exception as exc:
                log("WARNING", f"Cannot read directory {path}: {exc}", module="search")
                return

            for entry in entries:
                if cancelled():
                    return
                full_path = join_path(path, entry)
                try:
                    info = await self.manager.stat(full_path)
                except NotReadyError:
                    raise
                except Exception as exc:
                    log("WARNING", f"Cannot stat {full_path}: {exc}", module="search")
                    continue

                if info.is_directory:
                    async for batch in visit(full_path):
                        yield batch
                    continue

                if full_path in seen:
                    continue
                seen.add(full_path)

                if exclude is not None and exclude.search(full_path):
                    continue
                if include is not None and not include.search(full_path):
                    continue
                if pattern_error is not None:
                    log("WARNING", f"Skipping {full_path}: {pattern_error}", module="search")
                    continue

                try:
                    content = await self.manager.read_file(full_path)
                except NotReadyError:
                    raise
                except Exception as exc:
                    log("WARNING", f"Cannot read file {full_path}: {exc}", module="search")
                    continue
                if not content:
                    continue

                matches = scan_content(full_path, content, matcher)
                if matches:
                    yield FileBatch(path=full_path, matches=matches)

        for folder in options.folders:
            if cancelled():
                return
            async for batch in visit(normalize_path(folder)):
                yield batch

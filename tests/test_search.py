# tests/test_search.py
"""
Tests for walk-based and native search through SearchAggregator.
"""
import asyncio

import pytest

from hybridfs.file_access.base import ProviderName
from hybridfs.file_access.errors import NotReadyError, ProviderConnectionError, SearchPatternError
from hybridfs.file_access.local_provider import LocalFileSystem
from hybridfs.file_access.manager import HybridFileManager
from hybridfs.file_access.runtime_provider import EmbeddedRuntimeProvider
from hybridfs.integrations.embedded_runtime import DiskRuntime
from hybridfs.search.aggregator import SearchAggregator, reconcile_native_matches
from hybridfs.search.models import SearchOptions
from hybridfs.search.session import SearchSession, SearchState


async def local_aggregator(files):
    manager = HybridFileManager([LocalFileSystem(files=files)])
    await manager.initialize()
    return SearchAggregator(manager)


async def collect(aggregator, query, options=None, cancel=None):
    return [batch async for batch in aggregator.iter_batches(query, options, cancel)]


def spans(batch):
    return [(m.line_number, m.match_char_start, m.match_char_end) for m in batch.matches]


class TestWalkSearch:

    @pytest.mark.asyncio
    async def test_plain_substring_case_insensitive(self):
        aggregator = await local_aggregator({"/a.txt": "foo bar\nbaz foo"})

        received = []
        total = await aggregator.search(
            "FOO",
            SearchOptions(case_sensitive=False, use_regexp=False),
            lambda path, matches: received.append((path, matches)),
        )

        assert total == 2
        assert len(received) == 1
        path, matches = received[0]
        assert path == "/a.txt"
        assert [(m.line_number, m.match_char_start, m.match_char_end) for m in matches] == [(1, 0, 3), (2, 4, 7)]
        assert [m.preview_text for m in matches] == ["foo bar", "baz foo"]

    @pytest.mark.asyncio
    async def test_match_keeps_original_line_text(self):
        aggregator = await local_aggregator({"/src/App.tsx": "Hello from Bolt!"})

        batches = await collect(aggregator, "HELLO")

        assert len(batches) == 1
        match = batches[0].matches[0]
        assert match.preview_text == "Hello from Bolt!"
        assert (match.match_char_start, match.match_char_end) == (0, 5)

    @pytest.mark.asyncio
    async def test_case_sensitive(self):
        aggregator = await local_aggregator({"/a.txt": "Foo\nfoo"})
        batches = await collect(aggregator, "foo", SearchOptions(case_sensitive=True))
        assert spans(batches[0]) == [(2, 0, 3)]

    @pytest.mark.asyncio
    async def test_case_insensitive_offsets_follow_original_characters(self):
        # "ß" folds to "ss" and "İ" to two code points
        aggregator = await local_aggregator({"/a.txt": "Straße hier\nİx foo"})

        assert spans((await collect(aggregator, "STRASSE"))[0]) == [(1, 0, 6)]
        assert spans((await collect(aggregator, "foo"))[0]) == [(2, 3, 6)]

    @pytest.mark.asyncio
    async def test_only_first_match_per_line(self):
        aggregator = await local_aggregator({"/a.txt": "foo foo foo"})
        batches = await collect(aggregator, "foo")
        assert spans(batches[0]) == [(1, 0, 3)]

    @pytest.mark.asyncio
    async def test_whole_word(self):
        aggregator = await local_aggregator({"/a.txt": "foobar foo\nfood"})
        batches = await collect(aggregator, "foo", SearchOptions(whole_word=True))
        assert spans(batches[0]) == [(1, 7, 10)]

    @pytest.mark.asyncio
    async def test_whole_word_escapes_query(self):
        aggregator = await local_aggregator({"/a.txt": "call a.b now\ncall axb now"})
        batches = await collect(aggregator, "a.b", SearchOptions(whole_word=True))
        assert spans(batches[0]) == [(1, 5, 8)]

    @pytest.mark.asyncio
    async def test_regular_expression(self):
        aggregator = await local_aggregator({"/a.py": "x = 10\ny = 200\nz = w"})
        batches = await collect(aggregator, r"\d+", SearchOptions(use_regexp=True))
        assert spans(batches[0]) == [(1, 4, 6), (2, 4, 7)]

    @pytest.mark.asyncio
    async def test_regular_expression_case_insensitive(self):
        aggregator = await local_aggregator({"/a.txt": "ERROR: disk\nerror: net"})
        batches = await collect(aggregator, r"error:\s\w+", SearchOptions(use_regexp=True))
        assert spans(batches[0]) == [(1, 0, 11), (2, 0, 10)]

    @pytest.mark.asyncio
    async def test_files_in_depth_first_order(self):
        aggregator = await local_aggregator({
            "/a/inner/deep.txt": "needle",
            "/a/top.txt": "needle",
            "/b.txt": "needle",
        })
        batches = await collect(aggregator, "needle")
        assert [b.path for b in batches] == ["/a/inner/deep.txt", "/a/top.txt", "/b.txt"]

    @pytest.mark.asyncio
    async def test_folders_limit_the_walk(self):
        aggregator = await local_aggregator({"/src/a.txt": "needle", "/docs/b.txt": "needle"})
        batches = await collect(aggregator, "needle", SearchOptions(folders=["/docs"]))
        assert [b.path for b in batches] == ["/docs/b.txt"]

    @pytest.mark.asyncio
    async def test_files_without_matches_produce_no_batch(self):
        aggregator = await local_aggregator({"/a.txt": "nothing", "/b.txt": "", "/c.txt": "needle"})
        batches = await collect(aggregator, "needle")
        assert [b.path for b in batches] == ["/c.txt"]

    @pytest.mark.asyncio
    async def test_blank_query_searches_nothing(self):
        aggregator = await local_aggregator({"/a.txt": "anything"})
        assert await collect(aggregator, "") == []

    @pytest.mark.asyncio
    async def test_search_requires_ready_manager(self):
        aggregator = SearchAggregator(HybridFileManager([LocalFileSystem(files={})]))
        with pytest.raises(NotReadyError):
            await collect(aggregator, "x")


class TestFilters:

    @pytest.mark.asyncio
    async def test_excluded_path_contributes_nothing(self):
        aggregator = await local_aggregator({
            "/node_modules/lib.js": "needle",
            "/src/app.js": "needle",
        })
        batches = await collect(aggregator, "needle", SearchOptions(exclude_pattern="node_modules"))
        assert [b.path for b in batches] == ["/src/app.js"]

    @pytest.mark.asyncio
    async def test_include_pattern(self):
        aggregator = await local_aggregator({"/a.py": "needle", "/b.js": "needle"})
        batches = await collect(aggregator, "needle", SearchOptions(include_pattern=r"\.py$"))
        assert [b.path for b in batches] == ["/a.py"]

    @pytest.mark.asyncio
    async def test_exclude_wins_over_include(self):
        aggregator = await local_aggregator({"/a.py": "needle", "/test_a.py": "needle"})
        options = SearchOptions(include_pattern=r"\.py$", exclude_pattern="test_")
        batches = await collect(aggregator, "needle", options)
        assert [b.path for b in batches] == ["/a.py"]

    @pytest.mark.asyncio
    async def test_invalid_path_pattern_fails_the_search(self):
        aggregator = await local_aggregator({"/a.txt": "needle"})
        with pytest.raises(SearchPatternError):
            await collect(aggregator, "needle", SearchOptions(exclude_pattern="("))

    @pytest.mark.asyncio
    async def test_invalid_query_regex_skips_files(self):
        aggregator = await local_aggregator({"/a.txt": "(", "/b.txt": "x"})
        batches = await collect(aggregator, "(", SearchOptions(use_regexp=True))
        assert batches == []


class TestStreaming:

    @pytest.mark.asyncio
    async def test_max_results_caps_total_matches(self):
        aggregator = await local_aggregator({
            "/a.txt": "hit\nhit",
            "/b.txt": "hit\nhit",
            "/c.txt": "hit\nhit",
        })
        batches = await collect(aggregator, "hit", SearchOptions(max_results=3))
        assert [(b.path, len(b.matches)) for b in batches] == [("/a.txt", 2), ("/b.txt", 1)]

    @pytest.mark.asyncio
    async def test_cancel_stops_at_file_boundary(self):
        aggregator = await local_aggregator({"/a.txt": "hit", "/b.txt": "hit", "/c.txt": "hit"})
        cancel = asyncio.Event()

        seen = []
        async for batch in aggregator.iter_batches("hit", SearchOptions(), cancel):
            seen.append(batch.path)
            cancel.set()

        assert seen == ["/a.txt"]

    @pytest.mark.asyncio
    async def test_consumer_can_stop_early(self):
        aggregator = await local_aggregator({"/a.txt": "hit", "/b.txt": "hit"})
        stream = aggregator.iter_batches("hit")
        first = await stream.__anext__()
        await stream.aclose()
        assert first.path == "/a.txt"

    @pytest.mark.asyncio
    async def test_async_batch_callback(self):
        aggregator = await local_aggregator({"/a.txt": "hit"})
        received = []

        async def on_batch(path, matches):
            received.append(path)

        await aggregator.search("hit", SearchOptions(), on_batch)
        assert received == ["/a.txt"]


class TestNativeReconciliation:

    def test_preview_line_located_from_preview_start(self):
        raw = [{
            "preview": {"text": "line four\nline five has needle", "startLineNumber": 4},
            "ranges": [{"startLineNumber": 5, "startColumn": 14, "endColumn": 20}],
        }]
        [match] = reconcile_native_matches("/f.txt", raw)
        assert match.line_number == 6
        assert match.preview_text == "line five has needle"
        assert (match.match_char_start, match.match_char_end) == (14, 20)

    def test_out_of_range_falls_back_to_first_preview_line(self):
        raw = [{
            "preview": {"text": "only line", "startLineNumber": 10},
            "ranges": [{"startLineNumber": 3, "startColumn": 0, "endColumn": 4}],
        }]
        [match] = reconcile_native_matches("/f.txt", raw)
        assert match.line_number == 4
        assert match.preview_text == "only line"

    def test_single_range_object(self):
        raw = [{
            "preview": {"text": "abc", "startLineNumber": 0},
            "ranges": {"startLineNumber": 0, "startColumn": 1, "endColumn": 2},
        }]
        assert len(reconcile_native_matches("/f.txt", raw)) == 1


class TestNativeSearch:

    @pytest.fixture
    def workspace(self, tmp_path):
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "app.py").write_text("import os\n\nprint('needle')\n", encoding="utf-8")
        (tmp_path / "notes.md").write_text("needle in notes", encoding="utf-8")
        (tmp_path / "skip.log").write_text("needle", encoding="utf-8")
        return tmp_path

    async def runtime_manager(self, root):
        manager = HybridFileManager([EmbeddedRuntimeProvider({"root": str(root)})])
        await manager.initialize()
        assert manager.provider is ProviderName.EMBEDDED_RUNTIME
        return manager

    @pytest.mark.asyncio
    async def test_native_search_results_are_one_based(self, workspace):
        manager = await self.runtime_manager(workspace)
        batches = await collect(SearchAggregator(manager), "needle", SearchOptions(exclude_pattern=r"\.log$"))

        by_path = {b.path: b for b in batches}
        assert set(by_path) == {"/notes.md", "/src/app.py"}
        [match] = by_path["/src/app.py"].matches
        assert match.line_number == 3
        assert match.preview_text == "print('needle')"
        assert (match.match_char_start, match.match_char_end) == (7, 13)

    @pytest.mark.asyncio
    async def test_native_search_honours_result_cap(self, workspace):
        manager = await self.runtime_manager(workspace)
        batches = await collect(SearchAggregator(manager), "needle", SearchOptions(max_results=1))
        assert sum(len(b.matches) for b in batches) == 1

    @pytest.mark.asyncio
    async def test_unhealthy_native_provider_uses_walk(self, workspace):
        manager = await self.runtime_manager(workspace)
        manager.adapter.mark_unhealthy()

        batches = await collect(SearchAggregator(manager), "needle", SearchOptions(exclude_pattern=r"\.log$"))

        assert [b.path for b in batches] == ["/notes.md", "/src/app.py"]
        assert spans(batches[1]) == [(3, 7, 13)]

    async def flaky_native_manager(self, root, unhealthy_after_failure):
        """Runtime whose native search reports /notes.md and then drops."""
        holder = {}

        async def factory(path):
            runtime = await DiskRuntime.boot(path)

            async def text_search(query, options, on_progress):
                on_progress("/notes.md", [{
                    "preview": {"text": "needle in notes", "startLineNumber": 0},
                    "ranges": [{"startLineNumber": 0, "startColumn": 0, "endColumn": 6}],
                }])
                if unhealthy_after_failure:
                    holder["provider"].mark_unhealthy()
                raise ProviderConnectionError("search stream dropped")

            runtime.text_search = text_search
            return runtime

        provider = EmbeddedRuntimeProvider({"root": str(root)}, runtime_factory=factory)
        holder["provider"] = provider
        manager = HybridFileManager([provider])
        await manager.initialize()
        assert manager.provider is ProviderName.EMBEDDED_RUNTIME
        return manager

    @pytest.mark.asyncio
    async def test_native_failure_on_unhealthy_provider_continues_with_walk(self, workspace):
        manager = await self.flaky_native_manager(workspace, unhealthy_after_failure=True)

        batches = await collect(SearchAggregator(manager), "needle", SearchOptions(exclude_pattern=r"\.log$"))

        # the file already reported natively is not repeated by the walk
        assert [b.path for b in batches] == ["/notes.md", "/src/app.py"]
        assert spans(batches[1]) == [(3, 7, 13)]

    @pytest.mark.asyncio
    async def test_native_failure_on_healthy_provider_propagates(self, workspace):
        manager = await self.flaky_native_manager(workspace, unhealthy_after_failure=False)

        received = []
        with pytest.raises(ProviderConnectionError):
            async for batch in SearchAggregator(manager).iter_batches("needle", SearchOptions()):
                received.append(batch.path)
        assert received == ["/notes.md"]

    @pytest.mark.asyncio
    async def test_native_invalid_query_regex_fails_the_search(self, workspace):
        manager = await self.runtime_manager(workspace)
        with pytest.raises(SearchPatternError):
            await collect(SearchAggregator(manager), "(", SearchOptions(use_regexp=True))


class TestSearchSession:

    @pytest.mark.asyncio
    async def test_states(self):
        session = SearchSession(await local_aggregator({"/a.txt": "foo"}))
        assert session.state is SearchState.IDLE

        assert await session.run("foo") is SearchState.RESULTS
        assert session.match_count == 1
        assert list(session.results) == ["/a.txt"]

        assert await session.run("bar") is SearchState.NO_RESULTS
        assert session.results == {}

        assert await session.run("   ") is SearchState.IDLE

    @pytest.mark.asyncio
    async def test_error_state(self):
        session = SearchSession(await local_aggregator({"/a.txt": "foo"}))
        state = await session.run("foo", SearchOptions(include_pattern="["))
        assert state is SearchState.ERROR
        assert "include" in session.error
        assert session.results == {}

    @pytest.mark.asyncio
    async def test_newer_run_supersedes_older(self):
        session = SearchSession(await local_aggregator({"/a.txt": "foo", "/b.txt": "bar"}))
        first = asyncio.ensure_future(session.run("foo"))
        second = asyncio.ensure_future(session.run("bar"))
        await asyncio.gather(first, second)

        assert session.query == "bar"
        assert session.state is SearchState.RESULTS
        assert list(session.results) == ["/b.txt"]

# hybridfs/search/session.py
"""
Observable state of an interactive search.

A new run() supersedes the previous one: the older run is cancelled at its
next file boundary and never touches the session state again.
"""
import asyncio
from enum import Enum
from typing import Dict, List, Optional

from hybridfs.monitoring.logger import log
from hybridfs.search.aggregator import SearchAggregator
from hybridfs.search.models import SearchMatch, SearchOptions


class SearchState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    RESULTS = "results"
    NO_RESULTS = "no_results"
    ERROR = "error"


class SearchSession:
    def __init__(self, aggregator: SearchAggregator):
        self.aggregator = aggregator
        self.state = SearchState.IDLE
        self.query = ""
        self.results: Dict[str, List[SearchMatch]] = {}
        self.error: Optional[str] = None
        self._cancel: Optional[asyncio.Event] = None

    @property
    def match_count(self) -> int:
        return sum(len(matches) for matches in self.results.values())

    def cancel(self) -> None:
        """Stop the running search at its next file boundary."""
        if self._cancel is not None:
            self._cancel.set()

    async def run(self, query: str, options: Optional[SearchOptions] = None) -> SearchState:
        self.cancel()
        self.query = query
        self.results = {}
        self.error = None

        if not query.strip():
            self._cancel = None
            self.state = SearchState.IDLE
            return self.state

        cancel = asyncio.Event()
        self._cancel = cancel
        self.state = SearchState.LOADING
        results: Dict[str, List[SearchMatch]] = {}

        try:
            async for batch in self.aggregator.iter_batches(query, options, cancel):
                results.setdefault(batch.path, []).extend(batch.matches)
                if cancel is self._cancel:
                    self.results = results
        except Exception as exc:
            if cancel is not self._cancel:
                return self.state
            log("ERROR", f"Search '{query}' failed: {exc}", module="search")
            self.error = str(exc)
            self.state = SearchState.ERROR
            return self.state

        if cancel is not self._cancel:
            return self.state

        self.results = results
        self.state = SearchState.RESULTS if results else SearchState.NO_RESULTS
        return self.state

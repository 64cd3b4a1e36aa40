# hybridfs/search/matching.py
"""
Line matching for walk-based search.

Exactly one strategy applies per search: plain substring, whole word, or
regular expression. Only the first match on each line is reported.
"""
import re
from typing import Callable, List, Optional, Tuple

from hybridfs.file_access.errors import SearchPatternError
from hybridfs.search.models import SearchMatch, SearchOptions

# line -> (start, end) of the first match, or None
LineMatcher = Callable[[str], Optional[Tuple[int, int]]]


def compile_path_pattern(pattern: Optional[str], label: str) -> Optional[re.Pattern]:
    """
    Compile an include/exclude path filter.

    Raises:
        SearchPatternError: If the pattern is not a valid regular expression
    """
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise SearchPatternError(f"Invalid {label} pattern '{pattern}': {exc}") from exc


def build_line_matcher(query: str, options: SearchOptions) -> LineMatcher:
    """
    Build the matcher selected by the options.

    Raises:
        SearchPatternError: If use_regexp is set and query does not compile
    """
    if options.use_regexp:
        flags = 0 if options.case_sensitive else re.IGNORECASE
        try:
            regex = re.compile(query, flags)
        except re.error as exc:
            raise SearchPatternError(f"Invalid search pattern '{query}': {exc}") from exc
        return _regex_matcher(regex)

    if options.whole_word:
        flags = 0 if options.case_sensitive else re.IGNORECASE
        return _regex_matcher(re.compile(rf"\b(?:{re.escape(query)})\b", flags))

    if options.case_sensitive:
        def substring(line: str) -> Optional[Tuple[int, int]]:
            index = line.find(query)
            return None if index == -1 else (index, index + len(query))
        return substring

    folded_query = query.casefold()

    def folded_substring(line: str) -> Optional[Tuple[int, int]]:
        folded, origins = _fold_with_offsets(line)
        index = folded.find(folded_query)
        if index == -1:
            return None
        return origins[index], origins[index + len(folded_query) - 1] + 1

    return folded_substring


def _fold_with_offsets(line: str) -> Tuple[str, List[int]]:
    """
    Casefold line, keeping for each folded character the index of the
    original character it came from ("ß" folds to two characters).
    """
    pieces = []
    origins: List[int] = []
    for index, char in enumerate(line):
        folded = char.casefold()
        pieces.append(folded)
        origins.extend([index] * len(folded))
    return "".join(pieces), origins


def _regex_matcher(regex: re.Pattern) -> LineMatcher:
    def match(line: str) -> Optional[Tuple[int, int]]:
        found = regex.search(line)
        return None if found is None else (found.start(), found.end())
    return match


def scan_content(path: str, content: str, matcher: LineMatcher) -> List[SearchMatch]:
    """First match of each line of content, in line order."""
    matches = []
    for index, line in enumerate(content.split("\n")):
        span = matcher(line)
        if span is not None:
            matches.append(SearchMatch(
                path=path,
                line_number=index + 1,
                preview_text=line,
                match_char_start=span[0],
                match_char_end=span[1],
            ))
    return matches

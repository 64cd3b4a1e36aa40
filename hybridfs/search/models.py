# hybridfs/search/models.py
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class SearchOptions:
    """
    Options shared by both search strategies.

    include_pattern / exclude_pattern are regular expressions matched
    (re.search) against the file path.
    """
    folders: List[str] = field(default_factory=lambda: ["/"])
    include_pattern: Optional[str] = None
    exclude_pattern: Optional[str] = None
    max_results: Optional[int] = None
    use_regexp: bool = False
    case_sensitive: bool = False
    whole_word: bool = False


@dataclass
class SearchMatch:
    """
    One match. line_number is 1-based; match offsets are character
    positions within preview_text, which is the full matching line.
    """
    path: str
    line_number: int
    preview_text: str
    match_char_start: int
    match_char_end: int


@dataclass
class FileBatch:
    """All matches found in one file, in line order."""
    path: str
    matches: List[SearchMatch]

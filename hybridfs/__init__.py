# hybridfs/__init__.py

"""
hybridfs package initialization.

Exposes the package version (`from hybridfs import __version__`), read from
the top-level `VERSION` file when present so releases are bumped in one place.
"""

from pathlib import Path

_root = Path(__file__).resolve().parents[1]
_version_file = _root / "VERSION"
if _version_file.exists():
	__version__ = _version_file.read_text(encoding="utf-8").strip()
else:
	__version__ = "0.0.0"

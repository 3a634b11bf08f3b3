"""paper-scout: Resilient multi-source research paper lookup with AI enrichment."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("paper-scout")
except PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = ["__version__"]

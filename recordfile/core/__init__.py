"""Core components for record indexing and navigation."""

from recordfile.core import index, stream

__all__ = ["index", "stream"]

"""Concrete implementations of provider interfaces."""

from .host.console import ConsolePublisher
from .search.sourcegraph import SourcegraphSearch

__all__ = [
    "ConsolePublisher",
    "SourcegraphSearch",
]

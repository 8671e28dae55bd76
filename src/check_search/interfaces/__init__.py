"""Protocol definitions for pluggable adapters."""

from .host import DiagnosticsPublisher
from .search import SearchProvider

__all__ = ["DiagnosticsPublisher", "SearchProvider"]

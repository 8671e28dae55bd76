"""Abstract interface for search backend integrations."""

from typing import Protocol

from ..models.query import Query
from ..models.search import SearchPage


class SearchProvider(Protocol):
    """Abstract interface for code search backends.

    This protocol defines the contract that search adapters (Sourcegraph,
    scripted fakes in tests) must implement. Results are delivered in pages
    with cursor-based continuation.
    """

    async def search(
        self,
        query: Query,
        cursor: str | None = None,
    ) -> SearchPage:
        """
        Fetch one page of results for a query.

        Args:
            query: Query built by QueryBuilder
            cursor: Continuation cursor from the previous page, None for the first

        Returns:
            A page of hits. next_cursor is None when there are no more results.

        Raises:
            CollaboratorError: If the backend fails or cannot be reached
        """
        ...

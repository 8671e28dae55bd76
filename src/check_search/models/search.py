"""Data models exchanged with the search collaborator."""

from dataclasses import dataclass


@dataclass(frozen=True)
class SearchHit:
    """A raw search result as returned by a SearchProvider."""

    repository: str
    file_path: str
    start_line: int
    end_line: int
    text: str
    context: tuple[str, ...] = ()
    context_start: int = 1
    revision: str = ""
    whole_file: bool = False  # context holds every line of the file


@dataclass(frozen=True)
class SearchPage:
    """One page of search results.

    A next_cursor of None is the "no more results" terminal; transport
    failures are raised as CollaboratorError instead.
    """

    hits: tuple[SearchHit, ...]
    next_cursor: str | None = None

    @property
    def is_last(self) -> bool:
        """Return True if there are no further pages."""
        return self.next_cursor is None

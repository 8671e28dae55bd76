"""Data models and transfer objects."""

from .candidate import Candidate, LineRange
from .diagnostic import Decoration, Diagnostic, Location, Notice, NoticeLevel, Severity
from .edit import WorkspaceEdit
from .query import MatchUnit, PatternType, Query, RepositoryScope, SearchCriteria
from .search import SearchHit, SearchPage
from .verdict import CLEAN, Clean, FixSuggestion, Inconclusive, MatchVerdict, Violation

__all__ = [
    # Candidate models
    "LineRange",
    "Candidate",
    # Verdict models
    "CLEAN",
    "Clean",
    "FixSuggestion",
    "Inconclusive",
    "MatchVerdict",
    "Violation",
    # Diagnostic models
    "Decoration",
    "Diagnostic",
    "Location",
    "Notice",
    "NoticeLevel",
    "Severity",
    "WorkspaceEdit",
    # Query models
    "MatchUnit",
    "PatternType",
    "Query",
    "RepositoryScope",
    "SearchCriteria",
    "SearchHit",
    "SearchPage",
]

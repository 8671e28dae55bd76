"""Core check engine: query building, matching, aggregation and lifecycle."""

from .aggregator import DiagnosticAggregator
from .check import Check, CheckState, PresentationPolicy
from .code_actions import CodeAction, CodeActionProvider
from .match_stream import MatchStream, candidate_from_hit
from .presentation import decorations_for
from .query_builder import QueryBuilder
from .registry import CheckRegistry, build_criteria, create_registry

__all__ = [
    "Check",
    "CheckRegistry",
    "CheckState",
    "CodeAction",
    "CodeActionProvider",
    "DiagnosticAggregator",
    "MatchStream",
    "PresentationPolicy",
    "QueryBuilder",
    "build_criteria",
    "candidate_from_hit",
    "create_registry",
    "decorations_for",
]

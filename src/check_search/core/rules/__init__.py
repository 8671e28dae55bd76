"""Rule matchers: pure verdict functions over candidates."""

from .base import Rule, RuleKind, any_of, candidate_lines
from .code_ownership import CodeOwnershipRule, OwnershipRecord, compile_pattern, parse_codeowners
from .dependency_rules import DependencyEdge, DependencyRule, Package
from .import_star import ImportStarRule, export_map
from .no_inline_props import NoInlinePropsRule
from .travis_go import TravisGoRule, parse_version

# The closed set of rule variants a check can carry
RuleMatcher = ImportStarRule | NoInlinePropsRule | DependencyRule | CodeOwnershipRule | TravisGoRule

__all__ = [
    "CodeOwnershipRule",
    "DependencyEdge",
    "DependencyRule",
    "ImportStarRule",
    "NoInlinePropsRule",
    "OwnershipRecord",
    "Package",
    "Rule",
    "RuleKind",
    "RuleMatcher",
    "TravisGoRule",
    "any_of",
    "candidate_lines",
    "compile_pattern",
    "export_map",
    "parse_codeowners",
    "parse_version",
]

"""Forbidden package dependency detection.

Packages are declared by repository-relative path prefix and, optionally, by
the bare module prefixes other packages import them with. An import whose
source and target packages form a forbidden edge is a violation.
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from typing import ClassVar

from check_search.core.rules.base import RuleKind
from check_search.models.candidate import Candidate, LineRange
from check_search.models.query import MatchUnit
from check_search.models.verdict import CLEAN, Inconclusive, MatchVerdict, Violation

# Quoted module specifiers, tried in order
TS_SPECIFIERS = (
    re.compile(r"\bfrom\s+(['\"])(?P<target>[^'\"]+)\1"),
    re.compile(r"^\s*import\s+(['\"])(?P<target>[^'\"]+)\1"),
    re.compile(r"\brequire\(\s*(['\"])(?P<target>[^'\"]+)\1\s*\)"),
    re.compile(r"\bimport\(\s*(['\"])(?P<target>[^'\"]+)\1\s*\)"),
)
PY_FROM_IMPORT = re.compile(r"^\s*from\s+(?P<target>\.+[\w.]*|[\w.]+)\s+import\b")
PY_IMPORT = re.compile(r"^\s*import\s+(?P<target>[\w.]+)")

PYTHON_SUFFIXES = (".py", ".pyi")


@dataclass(frozen=True)
class Package:
    """A package known to the dependency check."""

    name: str
    path: str
    module_prefixes: tuple[str, ...] = ()

    def owns_path(self, path: str) -> bool:
        """Check whether a repository-relative path lies inside this package."""
        return path == self.path or path.startswith(self.path + "/")

    def owns_module(self, specifier: str) -> str | None:
        """Return the module prefix that matches the specifier, if any."""
        best: str | None = None
        for prefix in self.module_prefixes:
            if specifier == prefix or specifier.startswith((prefix + "/", prefix + ".")):
                if best is None or len(prefix) > len(best):
                    best = prefix
        return best


@dataclass(frozen=True)
class DependencyEdge:
    """A dependency from one package to another that is not allowed."""

    source: str
    target: str
    reason: str | None = None


@dataclass(frozen=True)
class DependencyRule:
    """Flags imports that cross a forbidden package boundary.

    Example:
        rule = DependencyRule(
            packages=(Package("web", "client/web"), Package("shared", "client/shared")),
            forbidden=(DependencyEdge("shared", "web"),),
        )
    """

    kind: ClassVar[RuleKind] = RuleKind.DEPENDENCY_RULES
    display_name: ClassVar[str] = "Package dependency rules"
    content_patterns: ClassVar[tuple[str, ...]] = (
        r"^\s*(import|export)\b.*\bfrom\s+['\"]",
        r"^\s*\}\s*from\s+['\"]",
        r"^\s*import\s+['\"]",
        r"\b(require|import)\(\s*['\"]",
        r"^\s*from\s+\S+\s+import\s",
        r"^\s*import\s+[\w.]+",
    )
    match_unit: ClassVar[MatchUnit] = MatchUnit.LINE

    packages: tuple[Package, ...] = ()
    forbidden: tuple[DependencyEdge, ...] = ()

    @property
    def rule_id(self) -> str:
        """Stable rule identifier."""
        return self.kind.value

    def evaluate(self, candidate: Candidate) -> MatchVerdict:
        """Decide whether the candidate imports across a forbidden edge."""
        source = self.package_for_path(candidate.file_path)
        if source is None:
            return Inconclusive(reason=f"No package declared for {candidate.file_path}")

        specifier = self._import_target(candidate)
        if specifier is None:
            return Inconclusive(reason="Matched text has no import target")

        target = self.resolve_target(candidate.file_path, specifier)
        if target is None or target.name == source.name:
            return CLEAN

        edge = self._forbidden_edge(source.name, target.name)
        if edge is None:
            return CLEAN

        detail = f"Package '{source.name}' must not depend on '{target.name}' (imports '{specifier}')"
        if edge.reason:
            detail = f"{detail}: {edge.reason}"
        return Violation(detail=detail, line_range=LineRange.single(candidate.line_range.start))

    def package_for_path(self, path: str) -> Package | None:
        """Find the package with the longest path prefix containing path."""
        best: Package | None = None
        for package in self.packages:
            if package.owns_path(path) and (best is None or len(package.path) > len(best.path)):
                best = package
        return best

    def resolve_target(self, importer: str, specifier: str) -> Package | None:
        """Resolve an import specifier to a declared package.

        Args:
            importer: Repository-relative path of the importing file
            specifier: Module specifier as written in the import

        Returns:
            The target package, or None for external or unknown modules
        """
        directory = posixpath.dirname(importer)

        if specifier.startswith(("./", "../")) or specifier in (".", ".."):
            resolved = posixpath.normpath(posixpath.join(directory, specifier))
            return None if resolved.startswith("..") else self.package_for_path(resolved)

        if importer.endswith(PYTHON_SUFFIXES) and specifier.startswith("."):
            dots = len(specifier) - len(specifier.lstrip("."))
            base = directory
            for _ in range(dots - 1):
                base = posixpath.dirname(base)
            remainder = specifier[dots:].replace(".", "/")
            resolved = posixpath.join(base, remainder) if remainder else base
            return self.package_for_path(resolved)

        best: Package | None = None
        best_prefix = ""
        for package in self.packages:
            prefix = package.owns_module(specifier)
            if prefix is not None and len(prefix) > len(best_prefix):
                best, best_prefix = package, prefix
        if best is not None:
            return best

        if importer.endswith(PYTHON_SUFFIXES):
            # Absolute Python imports may name the package directory directly
            return self.package_for_path(specifier.replace(".", "/"))
        return None

    def _import_target(self, candidate: Candidate) -> str | None:
        text = candidate.matched_text
        for pattern in TS_SPECIFIERS:
            match = pattern.search(text)
            if match:
                return match.group("target")

        if candidate.file_path.endswith(PYTHON_SUFFIXES):
            first = text.splitlines()[0] if text else ""
            match = PY_FROM_IMPORT.match(first) or PY_IMPORT.match(first)
            if match:
                return match.group("target")
        return None

    def _forbidden_edge(self, source: str, target: str) -> DependencyEdge | None:
        for edge in self.forbidden:
            if edge.source == source and edge.target == target:
                return edge
        return None


__all__ = ["DependencyEdge", "DependencyRule", "Package"]

"""Translation of rule search criteria into search backend queries.

The produced query text follows Sourcegraph query syntax:

    repo:^(github\\.com/org/a|github\\.com/org/b)$ -repo:^github\\.com/org/c$
    file:\\.tsx?$ -file:\\.test\\.tsx$ patternType:regexp case:yes count:500
    content:"import \\* as"
"""

from __future__ import annotations

import re

import structlog

from check_search.models.query import MatchUnit, PatternType, Query, SearchCriteria
from check_search.utils.async_helpers import InvalidCriteria
from check_search.utils.security import validate_repo_pattern

log = structlog.get_logger()


def _quote(value: str) -> str:
    """Quote a value for a query field."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _repo_regex(entry: str) -> str:
    """Regex fragment for one repository scope entry."""
    if entry.endswith("/*"):
        return re.escape(entry[:-2]) + "/.*"
    return re.escape(entry)


def _anchored(fragments: list[str]) -> str:
    if len(fragments) == 1:
        return f"^{fragments[0]}$"
    return "^(" + "|".join(fragments) + ")$"


def _covers(exclude: str, include: str) -> bool:
    """Check whether an exclude entry removes an include entry entirely."""
    if exclude == include:
        return True
    return exclude.endswith("/*") and include.startswith(exclude[:-1])


class QueryBuilder:
    """Builds search queries from declarative criteria.

    Example:
        builder = QueryBuilder()
        query = builder.build(
            SearchCriteria(
                repositories=RepositoryScope(include=("github.com/org/app",)),
                content_patterns=(r"import \\* as \\w+ from",),
            )
        )
    """

    def build(self, criteria: SearchCriteria) -> Query:
        """Build a query for the search collaborator.

        Args:
            criteria: Rule search criteria

        Returns:
            Query ready to be passed to a SearchProvider

        Raises:
            InvalidCriteria: If the criteria cannot select anything
        """
        self.validate(criteria)
        repositories = self.resolve_repositories(criteria)

        parts: list[str] = [f"repo:{_anchored([_repo_regex(r) for r in repositories])}"]

        include = criteria.repositories.include
        excluded = [r for r in criteria.repositories.exclude if r not in include]
        if excluded:
            parts.append(f"-repo:{_anchored([_repo_regex(r) for r in excluded])}")

        if criteria.file_patterns:
            if len(criteria.file_patterns) == 1:
                parts.append(f"file:{criteria.file_patterns[0]}")
            else:
                alternation = "|".join(f"({p})" for p in criteria.file_patterns)
                parts.append(f"file:{alternation}")

        for pattern in criteria.exclude_file_patterns:
            parts.append(f"-file:{pattern}")

        parts.append(f"patternType:{criteria.pattern_type.value}")
        parts.append("case:yes" if criteria.case_sensitive else "case:no")

        if criteria.match_unit is not MatchUnit.LINE:
            parts.append("select:file")

        parts.append(f"count:{criteria.max_results}")

        for pattern in criteria.content_patterns:
            parts.append(f"content:{_quote(pattern)}")
        for pattern in criteria.forbidden_patterns:
            parts.append(f"-content:{_quote(pattern)}")

        query = Query(
            text=" ".join(parts),
            max_results=criteria.max_results,
            match_unit=criteria.match_unit,
            repositories=repositories,
        )

        log.debug("query_built", query=query.text, repositories=len(repositories))
        return query

    def validate(self, criteria: SearchCriteria) -> None:
        """Validate criteria without building a query.

        Raises:
            InvalidCriteria: If the criteria are malformed
        """
        if criteria.max_results < 1:
            raise InvalidCriteria(f"max_results must be at least 1, got {criteria.max_results}")

        if not criteria.content_patterns and not criteria.file_patterns:
            raise InvalidCriteria("Criteria need at least one content or file pattern")

        all_patterns = (
            *criteria.file_patterns,
            *criteria.exclude_file_patterns,
            *criteria.content_patterns,
            *criteria.forbidden_patterns,
        )
        for pattern in all_patterns:
            if not pattern.strip():
                raise InvalidCriteria("Patterns cannot be empty")
            if "\n" in pattern or "\r" in pattern:
                raise InvalidCriteria(f"Patterns cannot span lines: {pattern!r}")

        # File filters are always regular expressions
        regexps = [*criteria.file_patterns, *criteria.exclude_file_patterns]
        if criteria.pattern_type is PatternType.REGEXP:
            regexps.extend(criteria.content_patterns)
            regexps.extend(criteria.forbidden_patterns)
        for pattern in regexps:
            try:
                re.compile(pattern)
            except re.error as e:
                raise InvalidCriteria(f"Invalid regular expression {pattern!r}: {e}") from e

        for repo in (*criteria.repositories.include, *criteria.repositories.exclude):
            if not validate_repo_pattern(repo):
                raise InvalidCriteria(f"Invalid repository name: {repo!r}")

    def resolve_repositories(self, criteria: SearchCriteria) -> tuple[str, ...]:
        """Resolve the repository scope to the entries that remain searchable.

        An include drops out when an exclude names it exactly or when an
        org wildcard exclude ("github.com/org/*") covers it.

        Raises:
            InvalidCriteria: If the scope resolves to zero repositories
        """
        excludes = criteria.repositories.exclude
        resolved: list[str] = []
        for entry in criteria.repositories.include:
            if entry in resolved or any(_covers(exclude, entry) for exclude in excludes):
                continue
            resolved.append(entry)

        if not resolved:
            raise InvalidCriteria("Repository scope resolves to zero repositories")

        return tuple(resolved)

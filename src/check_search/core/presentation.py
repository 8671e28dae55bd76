"""Inline decorations derived from diagnostics."""

from __future__ import annotations

from collections.abc import Iterable

from check_search.models.diagnostic import Decoration, Diagnostic

FileKey = tuple[str, str]


def decorations_for(diagnostics: Iterable[Diagnostic]) -> dict[FileKey, tuple[Decoration, ...]]:
    """Build one decoration per decorated line, grouped by file.

    A diagnostic decorates the first line of its range. When several
    diagnostics land on the same line, the most severe one is shown and the
    others are counted in its message.

    Args:
        diagnostics: Diagnostics in any order

    Returns:
        Mapping of (repository, file_path) to decorations sorted by line
    """
    per_line: dict[tuple[str, str, int], list[Diagnostic]] = {}
    for diagnostic in diagnostics:
        location = diagnostic.location
        key = (location.repository, location.file_path, location.line_range.start)
        per_line.setdefault(key, []).append(diagnostic)

    grouped: dict[FileKey, list[Decoration]] = {}
    for (repository, file_path, line), items in sorted(per_line.items()):
        # Most severe first, then in push order
        items.sort(key=lambda d: (-d.severity.rank, d.ordinal))
        head = items[0]
        message = head.message
        if len(items) > 1:
            message = f"{message} (+{len(items) - 1} more)"
        grouped.setdefault((repository, file_path), []).append(
            Decoration(
                repository=repository,
                file_path=file_path,
                line=line,
                message=message,
                severity=head.severity,
            )
        )

    return {key: tuple(items) for key, items in grouped.items()}


__all__ = ["decorations_for"]

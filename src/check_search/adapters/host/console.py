"""Terminal host for running checks from the command line.

Keeps the latest diagnostics and notices of every check in memory and
renders them as text or JSON once the run is over.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

import structlog

from ...core.presentation import decorations_for
from ...models.diagnostic import Diagnostic, Notice, Severity

log = structlog.get_logger()


def _diagnostic_dict(diagnostic: Diagnostic) -> dict[str, Any]:
    location = diagnostic.location
    data: dict[str, Any] = {
        "rule_id": diagnostic.rule_id,
        "severity": diagnostic.severity.value,
        "repository": location.repository,
        "file_path": location.file_path,
        "start_line": location.line_range.start,
        "end_line": location.line_range.end,
        "message": diagnostic.message,
        "revision": diagnostic.revision,
    }
    if diagnostic.fix is not None:
        data["fix"] = {
            "description": diagnostic.fix.description,
            "replacement": diagnostic.fix.replacement,
            "start_line": diagnostic.fix.line_range.start,
            "end_line": diagnostic.fix.line_range.end,
        }
    return data


def _notice_dict(notice: Notice) -> dict[str, Any]:
    return {
        "level": notice.level.value,
        "message": notice.message,
        "location": str(notice.location) if notice.location else None,
    }


class ConsolePublisher:
    """DiagnosticsPublisher that collects results for later rendering.

    Example:
        publisher = ConsolePublisher()
        registry = create_registry(config, search, publisher)
        await registry.start_all()
        print(publisher.render("text"))
    """

    def __init__(self) -> None:
        self._diagnostics: dict[str, tuple[Diagnostic, ...]] = {}
        self._notices: dict[str, list[Notice]] = {}

    def publish(self, check_id: str, diagnostics: Sequence[Diagnostic]) -> None:
        self._diagnostics[check_id] = tuple(diagnostics)

    def clear(self, check_id: str) -> None:
        self._diagnostics.pop(check_id, None)
        self._notices.pop(check_id, None)

    def notify(self, check_id: str, notice: Notice) -> None:
        self._notices.setdefault(check_id, []).append(notice)
        log.debug("host_notice", check_id=check_id, level=notice.level.value)

    def diagnostics(self, check_id: str | None = None) -> tuple[Diagnostic, ...]:
        """Return published diagnostics for one check or all checks."""
        if check_id is not None:
            return self._diagnostics.get(check_id, ())
        return tuple(d for items in self._diagnostics.values() for d in items)

    def notices(self, check_id: str | None = None) -> tuple[Notice, ...]:
        """Return notices for one check or all checks."""
        if check_id is not None:
            return tuple(self._notices.get(check_id, ()))
        return tuple(n for items in self._notices.values() for n in items)

    def has_errors(self) -> bool:
        """Return True if any published diagnostic has ERROR severity."""
        return any(d.severity is Severity.ERROR for d in self.diagnostics())

    def render(self, output: str = "text") -> str:
        """Render everything collected so far.

        Args:
            output: "text" for a human readable report, "json" for machines
        """
        if output == "json":
            return json.dumps(
                {
                    check_id: {
                        "diagnostics": [_diagnostic_dict(d) for d in self.diagnostics(check_id)],
                        "notices": [_notice_dict(n) for n in self.notices(check_id)],
                    }
                    for check_id in sorted(set(self._diagnostics) | set(self._notices))
                },
                indent=2,
            )
        return self._render_text()

    def _render_text(self) -> str:
        lines: list[str] = []
        for check_id in sorted(set(self._diagnostics) | set(self._notices)):
            diagnostics = self.diagnostics(check_id)
            lines.append(f"== {check_id}: {len(diagnostics)} diagnostic(s)")
            for (repository, file_path), decorations in decorations_for(diagnostics).items():
                lines.append(f"{repository}/{file_path}")
                for decoration in decorations:
                    lines.append(
                        f"  {decoration.line:>5}  {decoration.severity.value:<7}  "
                        f"{decoration.message}"
                    )
            for notice in self.notices(check_id):
                lines.append(f"  [{notice.level.value}] {notice.message}")
        return "\n".join(lines)

"""Quick fixes for diagnostics that carry a fix suggestion."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from check_search.models.diagnostic import Diagnostic
from check_search.models.edit import WorkspaceEdit
from check_search.utils.async_helpers import NoFixAvailable

log = structlog.get_logger()


@dataclass(frozen=True)
class CodeAction:
    """A quick fix offered at a location."""

    title: str
    diagnostic: Diagnostic
    edit: WorkspaceEdit


class CodeActionProvider:
    """Turns diagnostic fixes into workspace edits.

    Example:
        provider = CodeActionProvider()
        for action in provider.actions_for(diagnostics, repo, path, line=12):
            new_text = action.edit.apply(old_text)
    """

    def actions_for(
        self,
        diagnostics: Iterable[Diagnostic],
        repository: str,
        file_path: str,
        line: int,
    ) -> tuple[CodeAction, ...]:
        """Return the quick fixes available at a line.

        Args:
            diagnostics: Diagnostics currently shown for the file's checks
            repository: Repository of the open file
            file_path: Repository-relative path of the open file
            line: 1-based line the host asks about

        Returns:
            One action per fixable diagnostic covering the line
        """
        actions: list[CodeAction] = []
        for diagnostic in diagnostics:
            location = diagnostic.location
            if location.repository != repository or location.file_path != file_path:
                continue
            if diagnostic.fix is None:
                continue
            if not (location.line_range.contains(line) or diagnostic.fix.line_range.contains(line)):
                continue
            actions.append(
                CodeAction(
                    title=diagnostic.fix.description,
                    diagnostic=diagnostic,
                    edit=self.apply_fix(diagnostic),
                )
            )
        return tuple(actions)

    def apply_fix(self, diagnostic: Diagnostic) -> WorkspaceEdit:
        """Build the edit for a diagnostic's fix.

        Raises:
            NoFixAvailable: If the diagnostic has no fix suggestion
        """
        fix = diagnostic.fix
        if fix is None:
            raise NoFixAvailable(
                f"No fix available for {diagnostic.rule_id} at {diagnostic.location}"
            )
        log.debug(
            "fix_applied",
            rule_id=diagnostic.rule_id,
            location=str(diagnostic.location),
        )
        return WorkspaceEdit(
            repository=diagnostic.location.repository,
            file_path=diagnostic.location.file_path,
            line_range=fix.line_range,
            new_text=fix.replacement,
            description=fix.description,
            revision=diagnostic.revision,
        )

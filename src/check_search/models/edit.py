"""Data models for edits produced by code actions."""

from dataclasses import dataclass

from .candidate import LineRange


@dataclass(frozen=True)
class WorkspaceEdit:
    """An edit the host applies to one file.

    The new text replaces the whole lines covered by line_range.
    """

    repository: str
    file_path: str
    line_range: LineRange
    new_text: str
    description: str
    revision: str = ""

    def apply(self, text: str) -> str:
        """Apply this edit to the full text of the target file.

        Args:
            text: Current file content

        Returns:
            File content with the edit applied

        Raises:
            ValueError: If the edit range lies outside the file
        """
        lines = text.splitlines(keepends=True)
        if self.line_range.end > len(lines):
            raise ValueError(
                f"Edit range {self.line_range} is outside {self.file_path} "
                f"({len(lines)} lines)"
            )

        replaced = lines[self.line_range.end - 1]
        # Keep the replaced line's own ending, CRLF included
        newline = replaced[len(replaced.rstrip("\r\n")) :]
        new_text = self.new_text
        if newline and not new_text.endswith(("\n", "\r")):
            new_text += newline

        start = self.line_range.start - 1
        return "".join(lines[:start]) + new_text + "".join(lines[self.line_range.end :])

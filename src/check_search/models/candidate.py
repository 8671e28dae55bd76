"""Data models for matched source text under evaluation."""

from dataclasses import dataclass


@dataclass(frozen=True, order=True)
class LineRange:
    """An inclusive, 1-based range of lines in a file."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 1:
            raise ValueError(f"Line numbers are 1-based, got start={self.start}")
        if self.end < self.start:
            raise ValueError(f"Line range end {self.end} precedes start {self.start}")

    @classmethod
    def single(cls, line: int) -> "LineRange":
        """Range covering exactly one line."""
        return cls(line, line)

    @property
    def line_count(self) -> int:
        """Number of lines covered by this range."""
        return self.end - self.start + 1

    def contains(self, line: int) -> bool:
        """Check whether the given line falls inside this range."""
        return self.start <= line <= self.end

    def __str__(self) -> str:
        if self.start == self.end:
            return f"L{self.start}"
        return f"L{self.start}-L{self.end}"


@dataclass(frozen=True)
class Candidate:
    """One normalized search hit awaiting a verdict.

    Candidates are produced by MatchStream from a single search hit and are
    discarded once a rule has evaluated them.
    """

    repository: str
    file_path: str
    line_range: LineRange
    matched_text: str
    context_lines: tuple[str, ...] = ()
    context_start: int = 1  # Line number of context_lines[0]
    revision: str = ""
    whole_file: bool = False  # context_lines hold every line of the file

    @property
    def identity(self) -> tuple[str, str, LineRange, str]:
        """Key that must be unique within a single check run."""
        return (self.repository, self.file_path, self.line_range, self.revision)

    @property
    def context_end(self) -> int:
        """Line number of the last context line (context_start - 1 if empty)."""
        return self.context_start + len(self.context_lines) - 1

    def lines_after_match(self) -> tuple[str, ...]:
        """Context lines that follow the matched range."""
        offset = self.line_range.end - self.context_start + 1
        if offset < 0:
            return self.context_lines
        return self.context_lines[offset:]

    def lines_before_match(self) -> tuple[str, ...]:
        """Context lines that precede the matched range."""
        offset = self.line_range.start - self.context_start
        if offset <= 0:
            return ()
        return self.context_lines[:offset]

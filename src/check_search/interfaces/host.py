"""Abstract interface for the host that displays diagnostics."""

from collections.abc import Sequence
from typing import Protocol

from ..models.diagnostic import Diagnostic, Notice


class DiagnosticsPublisher(Protocol):
    """Abstract interface for hosts that present check results.

    Hosts render diagnostics as a list and as inline decorations. Calls are
    made from the event loop and must not block.
    """

    def publish(self, check_id: str, diagnostics: Sequence[Diagnostic]) -> None:
        """
        Replace the diagnostics shown for a check.

        Called incrementally as the check's snapshot changes. Each call
        carries the complete, ordered current set for that check.

        Args:
            check_id: Identifier of the publishing check
            diagnostics: Ordered current diagnostics
        """
        ...

    def clear(self, check_id: str) -> None:
        """
        Remove everything shown for a check.

        Args:
            check_id: Identifier of the disposed check
        """
        ...

    def notify(self, check_id: str, notice: Notice) -> None:
        """
        Show a notice that is not a rule violation.

        Args:
            check_id: Identifier of the check the notice belongs to
            notice: Notice to show
        """
        ...

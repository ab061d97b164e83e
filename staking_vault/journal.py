"""Snapshot/restore contract for in-process collaborators taking part in a vault operation."""

from abc import ABC, abstractmethod
from typing import Any


class Journaled(ABC):
    """State that can be captured before an operation and put back if the operation fails."""

    @abstractmethod
    def snapshot(self) -> Any:
        """Return an opaque copy of the current state."""

    @abstractmethod
    def restore(self, snap: Any) -> None:
        """Put back state captured by `snapshot`."""

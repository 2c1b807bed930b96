from __future__ import annotations

from typing import Any, Protocol


class KeyValueDocumentStore(Protocol):
    """
    Minimal medium interface: a single JSON-like document persisted under a key.
    """

    @property
    def location(self) -> str:
        """Human-readable location, used in log lines."""
        ...

    def load(self) -> dict[str, Any] | None:
        """Load the raw document; None when absent or unparseable."""
        ...

    def save(self, doc: dict[str, Any]) -> None:
        """Persist the full document atomically. Raises OSError on failure."""
        ...

    def clear(self) -> None:
        """Remove the persisted document."""
        ...

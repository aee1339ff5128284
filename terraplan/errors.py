"""Exception types shared by every stage.

Only caller bugs raise.  Expected negative outcomes (no path, no site,
walkable cell inside a structure) are returned as ``None`` instead.
"""

from __future__ import annotations


class InvalidArgument(ValueError):
    """Raised for malformed input: inverted bounds, negative buffers, bad costs."""


class InvalidState(RuntimeError):
    """Raised when an operation is not allowed in the object's current state."""

    def __init__(self, message: str, *, current: str | None = None) -> None:
        self.current = current
        if current is not None:
            message = f"{message} (current state: {current})"
        super().__init__(message)

"""Error kinds raised by the scheduling core."""
from __future__ import annotations


class VocabDrillError(Exception):
    """Base class for errors surfaced by vocabdrill."""

    code = "error"


class EmptyPoolError(VocabDrillError):
    """Raised when there is nothing eligible to study."""

    code = "empty_pool"

    def __init__(self, message: str = "Nothing to study") -> None:
        super().__init__(message)


class StoreUnavailableError(VocabDrillError):
    """Raised when the item store cannot be read or written. Retryable."""

    code = "store_unavailable"


class InvariantViolation(VocabDrillError):
    """Programming error: unknown ids, calls made in the wrong session state."""

    code = "invariant_violation"


__all__ = [
    "EmptyPoolError",
    "InvariantViolation",
    "StoreUnavailableError",
    "VocabDrillError",
]

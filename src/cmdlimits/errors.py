"""Errors raised while building a command.

Every admission that does not fit raises one of exactly three errors,
all subclasses of ``LimitError``:

- ``TooLargeError`` — the item can never fit, even in an empty command.
- ``TooManyError`` — the item count ceiling would be exceeded.
- ``InsufficientSpaceError`` — the item does not fit in what is left of
  the byte budget, but would fit in a fresh command.

Callers like ``xargs`` treat the last two as "flush and start a new
command" and the first as fatal, so the distinction matters.
"""

from enum import StrEnum


class LimitErrorKind(StrEnum):
    """Classify why an admission was rejected."""

    TOO_LARGE = "too_large"
    TOO_MANY = "too_many"
    INSUFFICIENT_SPACE = "insufficient_space"


class LimitError(Exception):
    """Raise when an argument or environment entry cannot be admitted.

    Attributes:
        size: Encoded cost of the rejected item in bytes.
        limit: The bound that was hit, if one applies.

    """

    kind: LimitErrorKind

    def __init__(self, msg: str, *, size: int = 0, limit: int | None = None) -> None:
        """Create the error with the rejected item's cost and the bound hit."""
        super().__init__(msg)
        self.size = size
        self.limit = limit

    @property
    def recoverable(self) -> bool:
        """Return True if the item could fit in a fresh command."""
        return self.kind is not LimitErrorKind.TOO_LARGE


class TooLargeError(LimitError):
    """Raise when a single item exceeds its individual size ceiling."""

    kind = LimitErrorKind.TOO_LARGE


class TooManyError(LimitError):
    """Raise when admitting an item would exceed the count ceiling."""

    kind = LimitErrorKind.TOO_MANY


class InsufficientSpaceError(LimitError):
    """Raise when an item does not fit in the remaining byte budget."""

    kind = LimitErrorKind.INSUFFICIENT_SPACE


class LimitsProfileError(RuntimeError):
    """Raise when a limits profile cannot be loaded.

    Examples: unreadable file, malformed JSON, unknown or invalid keys.
    """

"""Size accounting — admit or reject one item against a budget.

Arguments and environment entries are accounted for the same way, so
the logic lives here once and the builder keeps two independent
``AccountingState`` instances, one per pool.

Admission is check-then-commit.  The checks run in a fixed order
because the order decides which error the caller sees:

1. **Too large** — the item exceeds its individual ceiling (or the
   whole budget).  It can never fit, so this wins over everything.
2. **Too many** — one more item would exceed the count ceiling.
3. **Insufficient space** — the item does not fit in what is left.

Only when all three pass is the state updated, so a rejected item
leaves the counters exactly as they were.
"""

from dataclasses import dataclass

from cmdlimits.errors import InsufficientSpaceError, TooLargeError, TooManyError


@dataclass
class AccountingState:
    """Running totals for one pool (arguments or environment).

    Attributes:
        bytes_used: Sum of the encoded sizes of committed items.
        items_used: Number of committed items.

    """

    bytes_used: int = 0
    items_used: int = 0

    def copy(self) -> "AccountingState":
        """Return an independent copy of this state."""
        return AccountingState(bytes_used=self.bytes_used, items_used=self.items_used)


@dataclass(frozen=True)
class Budget:
    """The ceilings one admission is checked against.

    Attributes:
        size: Total byte budget.
        individual_size: Ceiling on one item, or None.
        count: Ceiling on the number of items, or None.
        reserved: Bytes of ``size`` already taken by the other pool
            when arguments and environment share a budget.

    """

    size: int
    individual_size: int | None = None
    count: int | None = None
    reserved: int = 0

    @property
    def item_ceiling(self) -> int:
        """Return the largest item that could ever be admitted."""
        if self.individual_size is None:
            return self.size
        return min(self.individual_size, self.size)

    def remaining(self, state: AccountingState) -> int:
        """Return how many bytes are still free for this pool."""
        return max(self.size - self.reserved - state.bytes_used, 0)


def check(state: AccountingState, budget: Budget, size: int) -> None:
    """Raise the appropriate ``LimitError`` if *size* cannot be admitted.

    Args:
        state: Current totals (not modified).
        budget: Ceilings to check against.
        size: Encoded size of the candidate item.

    Raises:
        TooLargeError: The item exceeds the individual ceiling.
        TooManyError: The count ceiling is already reached.
        InsufficientSpaceError: The item does not fit in what is left.
        ValueError: *size* is negative.

    """
    if size < 0:
        msg = f"Item size cannot be negative: {size}"
        raise ValueError(msg)

    ceiling = budget.item_ceiling
    if size > ceiling:
        msg = f"Item of {size} bytes exceeds the {ceiling}-byte item limit"
        raise TooLargeError(msg, size=size, limit=ceiling)

    if budget.count is not None and state.items_used + 1 > budget.count:
        msg = f"Item limit of {budget.count} reached"
        raise TooManyError(msg, size=size, limit=budget.count)

    if budget.reserved + state.bytes_used + size > budget.size:
        remaining = budget.remaining(state)
        msg = f"Item of {size} bytes does not fit in the remaining {remaining} bytes"
        raise InsufficientSpaceError(msg, size=size, limit=budget.size)


def check_and_commit(state: AccountingState, budget: Budget, size: int) -> None:
    """Admit one item of *size* bytes, or raise without touching *state*."""
    check(state, budget, size)
    state.bytes_used += size
    state.items_used += 1


def release(state: AccountingState, size: int) -> None:
    """Reverse one earlier ``check_and_commit`` of *size* bytes."""
    state.bytes_used = max(state.bytes_used - size, 0)
    state.items_used = max(state.items_used - 1, 0)

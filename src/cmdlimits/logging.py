"""Audit log for command construction.

A builder can be handed a ``Logger`` to record what it admitted and
what it turned away.  This is handy when a batch comes out smaller than
expected: the log shows which argument hit which ceiling.

- **LogLevel** — how much an event matters: admissions, mode switches,
  rejections.
- **LogEntry** — one event, tagged with the pool it touched and the
  encoded size of the item involved.
- **Logger** — the buffer a builder and its clones write into.

Admissions are logged at DEBUG, environment mode switches at INFO and
rejections at WARNING.  The ``source`` is the pool involved: ``"args"``
or ``"env"``.
"""

from dataclasses import dataclass
from enum import IntEnum


class LogLevel(IntEnum):
    """Event severities, lowest first, so ``min_level`` filtering is a comparison."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


@dataclass(frozen=True)
class LogEntry:
    """One recorded builder event.

    Attributes:
        level: DEBUG for an admitted item, INFO for an environment mode
            switch, WARNING for a rejected item.
        message: What was admitted, rejected or switched, e.g.
            ``"Admitted argument 'a'"``.
        source: The pool the event concerns (``"args"`` or ``"env"``).
        size: Encoded size of the item in bytes, 0 for events that are
            not about a single item.

    """

    level: LogLevel
    message: str
    source: str
    size: int = 0

    def __str__(self) -> str:
        """Render as ``[LEVEL] pool: message``."""
        return f"[{self.level.name}] {self.source}: {self.message}"


class Logger:
    """Collects builder events in the order they happened.

    One logger may be shared by a builder and all of its clones, so a
    whole ``xargs`` run lands in a single log.
    """

    def __init__(self) -> None:
        """Start with no events."""
        self._entries: list[LogEntry] = []

    @property
    def entries(self) -> list[LogEntry]:
        """Return a copy of every event, oldest first."""
        return list(self._entries)

    def log(
        self,
        level: LogLevel,
        message: str,
        *,
        source: str,
        size: int = 0,
    ) -> None:
        """Record one builder event.

        Args:
            level: Severity of the event.
            message: What happened to which item.
            source: The pool, ``"args"`` or ``"env"``.
            size: Encoded size of the item, if the event concerns one.

        """
        self._entries.append(LogEntry(level=level, message=message, source=source, size=size))

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
    ) -> list[LogEntry]:
        """Select events, e.g. ``filter(min_level=LogLevel.WARNING)`` for rejections.

        Args:
            min_level: Keep only events at or above this severity.
            source: Keep only events about this pool.

        """
        return [
            entry
            for entry in self._entries
            if (min_level is None or entry.level >= min_level)
            and (source is None or entry.source == source)
        ]

    def clear(self) -> None:
        """Forget every recorded event."""
        self._entries.clear()

    def __len__(self) -> int:
        """Return how many events have been recorded."""
        return len(self._entries)

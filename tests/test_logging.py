"""Tests for the audit log.

The builder records admissions, rejections and environment mode
switches in an optional ``Logger``.
"""

from cmdlimits.logging import LogEntry, Logger, LogLevel

ENTRY_SIZE = 17


class TestLogLevel:
    """Verify log level ordering."""

    def test_levels_are_ordered(self) -> None:
        """DEBUG < INFO < WARNING < ERROR."""
        assert LogLevel.DEBUG < LogLevel.INFO
        assert LogLevel.INFO < LogLevel.WARNING
        assert LogLevel.WARNING < LogLevel.ERROR


class TestLogEntry:
    """Verify log entry structure."""

    def test_entry_has_fields(self) -> None:
        """A log entry should store level, message, source, and size."""
        entry = LogEntry(level=LogLevel.INFO, message="switched", source="env", size=ENTRY_SIZE)
        assert entry.level is LogLevel.INFO
        assert entry.message == "switched"
        assert entry.source == "env"
        assert entry.size == ENTRY_SIZE

    def test_size_defaults_to_zero(self) -> None:
        """Entries not about a specific item have size 0."""
        assert LogEntry(level=LogLevel.INFO, message="m", source="args").size == 0

    def test_entry_str(self) -> None:
        """String form should be [LEVEL] source: message."""
        entry = LogEntry(level=LogLevel.WARNING, message="rejected", source="args")
        assert str(entry) == "[WARNING] args: rejected"


class TestLogger:
    """Verify the append-only buffer."""

    def test_starts_empty(self) -> None:
        """A new logger has no entries."""
        assert len(Logger()) == 0

    def test_log_appends_in_order(self) -> None:
        """Entries come back in the order they were logged."""
        logger = Logger()
        logger.log(LogLevel.DEBUG, "first", source="args")
        logger.log(LogLevel.INFO, "second", source="env")
        assert [e.message for e in logger.entries] == ["first", "second"]

    def test_entries_is_a_copy(self) -> None:
        """Mutating the returned list does not affect the log."""
        logger = Logger()
        logger.log(LogLevel.INFO, "kept", source="env")
        logger.entries.clear()
        assert len(logger) == 1

    def test_filter_by_level(self) -> None:
        """min_level keeps entries at or above the level."""
        logger = Logger()
        logger.log(LogLevel.DEBUG, "noise", source="args")
        logger.log(LogLevel.WARNING, "rejected", source="args")
        assert [e.message for e in logger.filter(min_level=LogLevel.INFO)] == ["rejected"]

    def test_filter_by_source(self) -> None:
        """source keeps only entries from that pool."""
        logger = Logger()
        logger.log(LogLevel.DEBUG, "a", source="args")
        logger.log(LogLevel.DEBUG, "e", source="env")
        assert [e.message for e in logger.filter(source="env")] == ["e"]

    def test_filter_without_criteria_is_a_copy(self) -> None:
        """An unfiltered result is still a fresh list."""
        logger = Logger()
        logger.log(LogLevel.DEBUG, "a", source="args")
        logger.filter().clear()
        assert len(logger) == 1

    def test_clear(self) -> None:
        """clear() removes everything."""
        logger = Logger()
        logger.log(LogLevel.ERROR, "x", source="args")
        logger.clear()
        assert logger.entries == []

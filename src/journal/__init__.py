"""Append-only JSON-lines journal of pipeline output."""

from journal.writer import JournalWriter

__all__ = ["JournalWriter"]

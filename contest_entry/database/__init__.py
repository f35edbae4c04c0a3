"""Durable storage for entry attempts and entry limits."""

from contest_entry.database.operations import EntryStore

__all__ = ["EntryStore"]

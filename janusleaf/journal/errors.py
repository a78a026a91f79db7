"""Errors raised by JournalStore and surfaced to API callers unchanged."""

from __future__ import annotations


class JournalError(Exception):
    """Base exception for journal store errors."""

    pass


class JournalEntryNotFoundError(JournalError):
    """Entry does not exist or belongs to another user."""

    def __init__(self, entry_id: str):
        super().__init__(f"Journal entry not found: {entry_id}")
        self.entry_id = entry_id


class VersionConflictError(JournalError):
    """The caller's expected version no longer matches the stored one."""

    def __init__(self, entry_id: str, expected_version: int, current_version: int):
        super().__init__(
            f"Journal entry {entry_id} was modified: expected version "
            f"{expected_version}, current version {current_version}"
        )
        self.entry_id = entry_id
        self.expected_version = expected_version
        self.current_version = current_version


class JournalValidationError(JournalError, ValueError):
    """Malformed input, rejected before any mutation."""

    pass

"""Journal entries: model, repository and the versioned JournalStore"""

from janusleaf.journal.errors import (
    JournalEntryNotFoundError,
    JournalError,
    JournalValidationError,
    VersionConflictError,
)
from janusleaf.journal.models import JournalEntry, JournalPage

__all__ = [
    "JournalEntry",
    "JournalEntryNotFoundError",
    "JournalError",
    "JournalPage",
    "JournalValidationError",
    "VersionConflictError",
]

from __future__ import annotations

NO_QUOTE_YET_MESSAGE = (
    "No inspirational quote generated yet. "
    "One will be created shortly based on your journal entries."
)


class QuoteNotFoundError(Exception):
    """The user has no quote yet; the scheduler creates one after their first entry."""

    def __init__(self, user_id: str):
        super().__init__(NO_QUOTE_YET_MESSAGE)
        self.user_id = user_id

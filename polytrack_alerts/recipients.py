from __future__ import annotations

import logging
from typing import Callable

from .evaluation.cache import BatchMemo

logger = logging.getLogger(__name__)


class RecipientResolver:
    """Maps alert owners to email addresses, one directory lookup per user per batch."""

    def __init__(self, lookup: Callable[[str], str | None]) -> None:
        self._lookup = lookup
        self._memo: BatchMemo[str | None] = BatchMemo(self._safe_lookup)

    @property
    def lookup_calls(self) -> int:
        return self._memo.loader_calls

    def _safe_lookup(self, user_id: str) -> str | None:
        try:
            email = self._lookup(user_id)
        except Exception:
            logger.exception("recipient_lookup_failed user_id=%s", user_id)
            return None
        email = (email or "").strip()
        return email or None

    def resolve(self, user_id: str) -> str | None:
        return self._memo.get(user_id)

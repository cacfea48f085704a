from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

from ..models import MarketSnapshot

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BatchMemo(Generic[T]):
    """Memoizes one loader call per key, failures included.

    A key that failed once keeps raising the same error for the rest of the
    batch; the loader is never retried.
    """

    def __init__(self, loader: Callable[[str], T]) -> None:
        self._loader = loader
        self._values: dict[str, T] = {}
        self._errors: dict[str, Exception] = {}
        self.loader_calls = 0

    def __contains__(self, key: str) -> bool:
        return key in self._values or key in self._errors

    def __len__(self) -> int:
        return len(self._values) + len(self._errors)

    def get(self, key: str) -> T:
        if key in self._values:
            return self._values[key]
        if key in self._errors:
            raise self._errors[key]
        self.loader_calls += 1
        try:
            value = self._loader(key)
        except Exception as exc:
            self._errors[key] = exc
            raise
        self._values[key] = value
        return value


class MarketSnapshotCache:
    def __init__(self, fetcher: Callable[[str], MarketSnapshot]) -> None:
        self._memo: BatchMemo[MarketSnapshot] = BatchMemo(fetcher)

    @property
    def upstream_calls(self) -> int:
        return self._memo.loader_calls

    def fetch(self, market_slug: str) -> MarketSnapshot:
        cached = market_slug in self._memo
        snapshot = self._memo.get(market_slug)
        if not cached:
            logger.debug(
                "market_snapshot_fetched slug=%s volume=%s favorite=%s",
                market_slug,
                snapshot.total_volume,
                snapshot.favorite_outcome_id,
            )
        return snapshot

from __future__ import annotations

import unittest

from polytrack_alerts.evaluation.cache import BatchMemo, MarketSnapshotCache
from polytrack_alerts.evaluation.state import AlertStateStore
from polytrack_alerts.models import MarketSnapshot
from polytrack_alerts.recipients import RecipientResolver


def _snapshot(slug: str) -> MarketSnapshot:
    return MarketSnapshot(
        slug=slug, title=slug, total_volume=1.0, outcomes=(), favorite_outcome_id=None
    )


class MarketSnapshotCacheTests(unittest.TestCase):
    def test_same_slug_shares_one_fetch(self) -> None:
        calls: list[str] = []

        def fetcher(slug: str) -> MarketSnapshot:
            calls.append(slug)
            return _snapshot(slug)

        cache = MarketSnapshotCache(fetcher)
        first = cache.fetch("a")
        second = cache.fetch("a")
        cache.fetch("b")
        self.assertIs(first, second)
        self.assertEqual(calls, ["a", "b"])
        self.assertEqual(cache.upstream_calls, 2)

    def test_failure_is_remembered_for_the_batch(self) -> None:
        calls: list[str] = []

        def fetcher(slug: str) -> MarketSnapshot:
            calls.append(slug)
            raise RuntimeError(f"Market with slug {slug} not found")

        cache = MarketSnapshotCache(fetcher)
        with self.assertRaises(RuntimeError):
            cache.fetch("gone")
        with self.assertRaises(RuntimeError):
            cache.fetch("gone")
        self.assertEqual(calls, ["gone"])

    def test_memo_membership(self) -> None:
        memo: BatchMemo[int] = BatchMemo(len)
        self.assertNotIn("abc", memo)
        self.assertEqual(memo.get("abc"), 3)
        self.assertIn("abc", memo)
        self.assertEqual(len(memo), 1)


class RecipientResolverTests(unittest.TestCase):
    def test_lookup_memoized_per_user(self) -> None:
        calls: list[str] = []

        def lookup(user_id: str) -> str | None:
            calls.append(user_id)
            return f"{user_id}@example.com"

        resolver = RecipientResolver(lookup)
        self.assertEqual(resolver.resolve("u1"), "u1@example.com")
        self.assertEqual(resolver.resolve("u1"), "u1@example.com")
        self.assertEqual(calls, ["u1"])

    def test_lookup_error_resolves_to_none_once(self) -> None:
        calls: list[str] = []

        def lookup(user_id: str) -> str | None:
            calls.append(user_id)
            raise RuntimeError("directory down")

        resolver = RecipientResolver(lookup)
        with self.assertLogs("polytrack_alerts.recipients", level="ERROR"):
            self.assertIsNone(resolver.resolve("u1"))
        self.assertIsNone(resolver.resolve("u1"))
        self.assertEqual(resolver.lookup_calls, 1)

    def test_blank_email_is_none(self) -> None:
        resolver = RecipientResolver(lambda user_id: "  ")
        self.assertIsNone(resolver.resolve("u1"))


class AlertStateStoreTests(unittest.TestCase):
    def test_previous_volume_defaults_to_current(self) -> None:
        state = AlertStateStore()
        self.assertEqual(state.get_previous_volume("a", 42.0), 42.0)
        self.assertEqual(state.swap_volume("a", 42.0), 42.0)
        self.assertEqual(state.swap_volume("a", 50.0), 42.0)
        self.assertEqual(state.get_previous_volume("a", 0.0), 50.0)

    def test_previous_favorite_has_no_default(self) -> None:
        state = AlertStateStore()
        self.assertIsNone(state.swap_favorite("a", "x"))
        self.assertEqual(state.swap_favorite("a", None), "x")
        self.assertIsNone(state.get_previous_favorite("a"))


if __name__ == "__main__":
    unittest.main()

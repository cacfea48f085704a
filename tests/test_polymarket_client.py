from __future__ import annotations

from types import SimpleNamespace
import unittest

import requests

from polytrack_alerts.polymarket_client import (
    MarketDataError,
    PolymarketClient,
    parse_event_payload,
)


def _event(market: dict[str, object]) -> dict[str, object]:
    return {"events": [{"slug": "fed-cut", "title": "Fed cuts in December?", "markets": [market]}]}


class _FakeResponse:
    def __init__(self, status_code: int, payload: object) -> None:
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self._payload = payload

    def json(self) -> object:
        return self._payload


class _FakeSession:
    def __init__(self, response: _FakeResponse | None = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls: list[dict[str, object]] = []

    def get(self, url: str, params: dict[str, object], timeout: float) -> _FakeResponse:
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        if self.error is not None:
            raise self.error
        assert self.response is not None
        return self.response


def _client(session: _FakeSession, stub_mode: bool = False) -> PolymarketClient:
    settings = SimpleNamespace(
        polymarket_base_url="https://gamma-api.polymarket.com/events",
        polymarket_stub_mode=stub_mode,
        http_timeout_seconds=5.0,
    )
    client = PolymarketClient(settings)
    client.session = session
    return client


class ParseEventPayloadTests(unittest.TestCase):
    def test_keeps_top_two_by_volume(self) -> None:
        snapshot = parse_event_payload(
            "fed-cut",
            _event(
                {
                    "id": "123",
                    "volume": 25000,
                    "outcomes": ["No change", "25 bps", "50 bps"],
                    "outcomePrices": [0.7, 0.25, 0.05],
                    "outcomeVolumes": [9000, 12000, 4000],
                }
            ),
        )
        self.assertEqual([outcome.id for outcome in snapshot.outcomes], ["123-1", "123-0"])
        self.assertEqual(snapshot.favorite_outcome_id, "123-0")
        self.assertEqual(snapshot.total_volume, 25000.0)
        self.assertEqual(snapshot.title, "Fed cuts in December?")
        self.assertEqual(snapshot.outcomes[0].probability, 0.25)

    def test_volume_tie_breaks_on_probability(self) -> None:
        snapshot = parse_event_payload(
            "fed-cut",
            _event(
                {
                    "id": "9",
                    "outcomes": ["Yes", "No"],
                    "outcomePrices": [0.3, 0.7],
                    "outcomeVolumes": [100, 100],
                }
            ),
        )
        self.assertEqual(snapshot.outcomes[0].id, "9-1")
        # Without a numeric market volume the kept outcome volumes are summed.
        self.assertEqual(snapshot.total_volume, 200.0)

    def test_json_encoded_arrays_and_defaults(self) -> None:
        snapshot = parse_event_payload(
            "fed-cut",
            _event(
                {
                    "id": "7",
                    "volume": "1234.5",
                    "outcomes": '["Yes", "No"]',
                    "outcomePrices": '["0.61", "0.39"]',
                }
            ),
        )
        self.assertEqual(snapshot.favorite_outcome_id, "7-0")
        self.assertEqual(snapshot.outcomes[0].volume, 0.0)
        self.assertEqual(snapshot.total_volume, 0.0)

    def test_missing_event_raises(self) -> None:
        with self.assertRaises(MarketDataError):
            parse_event_payload("nope", {"events": []})

    def test_missing_market_raises(self) -> None:
        with self.assertRaises(MarketDataError):
            parse_event_payload("nope", {"events": [{"slug": "nope", "title": "x", "markets": []}]})

    def test_missing_outcomes_raises(self) -> None:
        with self.assertRaises(MarketDataError):
            parse_event_payload("nope", _event({"id": "1", "outcomes": []}))

    def test_unrecognized_payload_raises(self) -> None:
        with self.assertRaises(MarketDataError):
            parse_event_payload("nope", {"unexpected": True})


class PolymarketClientTests(unittest.TestCase):
    def test_get_market_data_queries_by_slug(self) -> None:
        session = _FakeSession(
            _FakeResponse(
                200,
                _event({"id": "1", "outcomes": ["Yes", "No"], "outcomePrices": [0.5, 0.5]}),
            )
        )
        snapshot = _client(session).get_market_data("fed-cut")
        self.assertEqual(snapshot.slug, "fed-cut")
        self.assertEqual(session.calls[0]["params"], {"slug": "fed-cut"})
        self.assertEqual(session.calls[0]["timeout"], 5.0)

    def test_http_error_raises_market_data_error(self) -> None:
        session = _FakeSession(_FakeResponse(503, {}))
        with self.assertRaises(MarketDataError):
            _client(session).get_market_data("fed-cut")

    def test_transport_error_raises_market_data_error(self) -> None:
        session = _FakeSession(error=requests.ConnectionError("reset"))
        with self.assertRaises(MarketDataError):
            _client(session).get_market_data("fed-cut")

    def test_stub_mode_skips_network(self) -> None:
        session = _FakeSession()
        snapshot = _client(session, stub_mode=True).get_market_data("stub-slug")
        self.assertEqual(session.calls, [])
        self.assertEqual(len(snapshot.outcomes), 2)
        self.assertIn(snapshot.favorite_outcome_id, {outcome.id for outcome in snapshot.outcomes})


if __name__ == "__main__":
    unittest.main()

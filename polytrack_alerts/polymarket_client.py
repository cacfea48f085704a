from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
from typing import Any

import requests

from .config import Settings
from .mock_data import generate_market_snapshot
from .models import MarketOutcome, MarketSnapshot

logger = logging.getLogger(__name__)

TOP_OUTCOME_COUNT = 2


class MarketDataError(RuntimeError):
    pass


def _as_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_list(value: Any) -> list[Any]:
    # Gamma returns outcome arrays either as JSON lists or JSON-encoded strings.
    if value is None:
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return []
    if not isinstance(value, list):
        return []
    return value


def _normalize_outcome(market: dict[str, Any], index: int) -> MarketOutcome:
    labels = _as_list(market.get("outcomes"))
    prices = _as_list(market.get("outcomePrices"))
    volumes = _as_list(market.get("outcomeVolumes"))
    label = str(labels[index]) if index < len(labels) else f"Outcome {index + 1}"
    price = (_as_float(prices[index]) if index < len(prices) else None) or 0.0
    volume = (_as_float(volumes[index]) if index < len(volumes) else None) or 0.0
    return MarketOutcome(
        id=f"{market.get('id')}-{index}",
        label=label,
        price=price,
        probability=price,
        volume=volume,
    )


def _top_outcomes(outcomes: list[MarketOutcome]) -> list[MarketOutcome]:
    ranked = sorted(outcomes, key=lambda row: (row.volume, row.probability), reverse=True)
    return ranked[:TOP_OUTCOME_COUNT]


def _favorite_outcome(outcomes: list[MarketOutcome]) -> MarketOutcome | None:
    favorite: MarketOutcome | None = None
    for outcome in outcomes:
        if favorite is None or outcome.probability > favorite.probability:
            favorite = outcome
    return favorite


def parse_event_payload(slug: str, payload: Any) -> MarketSnapshot:
    if isinstance(payload, dict):
        events = payload.get("events")
    else:
        events = payload
    if not isinstance(events, list):
        raise MarketDataError(f"Unrecognized market payload for slug {slug}")
    event = events[0] if events else None
    if not isinstance(event, dict):
        raise MarketDataError(f"Market with slug {slug} not found")

    markets = event.get("markets")
    market = markets[0] if isinstance(markets, list) and markets else None
    if not isinstance(market, dict):
        raise MarketDataError(f"No markets available for slug {slug}")

    total_outcomes = len(_as_list(market.get("outcomes")))
    if total_outcomes == 0:
        raise MarketDataError(f"Market {market.get('id')} does not contain outcomes data")

    outcomes = _top_outcomes([_normalize_outcome(market, idx) for idx in range(total_outcomes)])
    favorite = _favorite_outcome(outcomes)
    raw_volume = market.get("volume")
    if isinstance(raw_volume, (int, float)) and not isinstance(raw_volume, bool):
        total_volume = float(raw_volume)
    else:
        total_volume = sum(outcome.volume for outcome in outcomes)

    return MarketSnapshot(
        slug=str(event.get("slug") or slug),
        title=str(event.get("title") or market.get("question") or slug),
        total_volume=total_volume,
        outcomes=tuple(outcomes),
        favorite_outcome_id=favorite.id if favorite else None,
    )


class PolymarketClient:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.session = requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def health_check(self) -> dict[str, Any]:
        if self.settings.polymarket_stub_mode:
            return {"ok": True, "mode": "stub"}
        payload = self._request_json({"limit": 1})
        count = len(payload) if isinstance(payload, list) else len(payload.get("events") or [])
        return {"ok": True, "mode": "live", "events_returned": count}

    def get_market_data(self, slug: str) -> MarketSnapshot:
        if self.settings.polymarket_stub_mode:
            return generate_market_snapshot(slug, datetime.now(timezone.utc))
        payload = self._request_json({"slug": slug})
        return parse_event_payload(slug, payload)

    def _request_json(self, params: dict[str, Any]) -> Any:
        try:
            response = self.session.get(
                self.settings.polymarket_base_url,
                params=params,
                timeout=self.settings.http_timeout_seconds,
            )
        except requests.RequestException as exc:
            raise MarketDataError(f"Polymarket request failed: {exc}") from exc
        if not response.ok:
            raise MarketDataError(
                f"Polymarket request failed with status {response.status_code}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise MarketDataError("Polymarket returned a non-JSON body") from exc

from __future__ import annotations

from datetime import datetime
import random

from .models import MarketOutcome, MarketSnapshot


def _seeded_random(seed: str) -> random.Random:
    return random.Random(seed)


def generate_market_snapshot(slug: str, at_time: datetime) -> MarketSnapshot:
    rng = _seeded_random(f"{slug}:{at_time.replace(second=0, microsecond=0).isoformat()}")
    yes_price = round(rng.uniform(0.05, 0.95), 3)
    no_price = round(1 - yes_price, 3)
    outcomes = [
        MarketOutcome(
            id=f"{slug}-0",
            label="Yes",
            price=yes_price,
            probability=yes_price,
            volume=round(rng.uniform(500, 15000), 2),
        ),
        MarketOutcome(
            id=f"{slug}-1",
            label="No",
            price=no_price,
            probability=no_price,
            volume=round(rng.uniform(500, 15000), 2),
        ),
    ]
    outcomes.sort(key=lambda row: (row.volume, row.probability), reverse=True)
    favorite = max(outcomes, key=lambda row: row.probability)
    return MarketSnapshot(
        slug=slug,
        title=f"Stub market {slug}",
        total_volume=round(sum(outcome.volume for outcome in outcomes), 2),
        outcomes=tuple(outcomes),
        favorite_outcome_id=favorite.id,
    )

from __future__ import annotations

from ..models import (
    PRESET_FLIP,
    PRESET_WHALE,
    RULE_AND,
    Alert,
    AlertCondition,
    AlertRule,
    MarketSnapshot,
)
from .state import AlertStateStore

WHALE_VOLUME_SPIKE_RATIO = 1.2
# No trade-level feed is available, so a large per-outcome volume stands in for a whale trade.
WHALE_OUTCOME_VOLUME_THRESHOLD = 10000.0


def metric_value(metric: str, snapshot: MarketSnapshot) -> float:
    primary = snapshot.primary_outcome
    if metric == "volume":
        return snapshot.total_volume
    if metric == "probability":
        return primary.probability if primary is not None else 0.0
    if metric == "price":
        return primary.price if primary is not None else 0.0
    return 0.0


def evaluate_condition(condition: AlertCondition, snapshot: MarketSnapshot) -> bool:
    value = metric_value(condition.metric, snapshot)
    if condition.operator == "gt":
        return value > condition.value
    return value < condition.value


def evaluate_rule(rule: AlertRule | None, snapshot: MarketSnapshot) -> bool:
    if rule is None or not rule.conditions:
        return False
    results = (evaluate_condition(condition, snapshot) for condition in rule.conditions)
    if rule.operator == RULE_AND:
        return all(results)
    return any(results)


def evaluate_whale_preset(
    alert_id: str, snapshot: MarketSnapshot, state: AlertStateStore
) -> bool:
    current_volume = snapshot.total_volume
    previous_volume = state.swap_volume(alert_id, current_volume)
    volume_spike = current_volume > previous_volume * WHALE_VOLUME_SPIKE_RATIO
    large_outcome = any(
        outcome.volume >= WHALE_OUTCOME_VOLUME_THRESHOLD for outcome in snapshot.outcomes
    )
    return volume_spike or large_outcome


def evaluate_flip_preset(
    alert_id: str, snapshot: MarketSnapshot, state: AlertStateStore
) -> bool:
    current_favorite = snapshot.favorite_outcome_id
    previous_favorite = state.swap_favorite(alert_id, current_favorite)
    if not current_favorite or not previous_favorite:
        return False
    return current_favorite != previous_favorite


def evaluate_alert(alert: Alert, snapshot: MarketSnapshot, state: AlertStateStore) -> bool:
    if alert.is_preset:
        if alert.preset_type == PRESET_WHALE:
            return evaluate_whale_preset(alert.id, snapshot, state)
        if alert.preset_type == PRESET_FLIP:
            return evaluate_flip_preset(alert.id, snapshot, state)
        return False
    return evaluate_rule(alert.rule, snapshot)

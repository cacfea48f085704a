from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
import json
from typing import Any

ALERT_TYPE_PRESET = "PRESET"
ALERT_TYPE_CUSTOM = "CUSTOM"
PRESET_WHALE = "WHALE"
PRESET_FLIP = "FLIP"
RULE_AND = "AND"
RULE_OR = "OR"

ALERT_TYPES = {ALERT_TYPE_PRESET, ALERT_TYPE_CUSTOM}
PRESET_TYPES = {PRESET_WHALE, PRESET_FLIP}


@dataclass(frozen=True)
class AlertCondition:
    metric: str
    operator: str
    value: float

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "AlertCondition":
        return cls(
            metric=str(payload.get("metric", "")).strip().lower(),
            operator=str(payload.get("operator", "")).strip().lower(),
            value=float(payload.get("value", 0)),
        )


@dataclass(frozen=True)
class AlertRule:
    operator: str
    conditions: tuple[AlertCondition, ...] = ()

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "AlertRule":
        raw_conditions = payload.get("conditions") or []
        if not isinstance(raw_conditions, list):
            raise ValueError("rule conditions must be a list")
        conditions = tuple(
            AlertCondition.from_dict(item) for item in raw_conditions if isinstance(item, dict)
        )
        operator = str(payload.get("operator", RULE_OR)).strip().upper()
        return cls(operator=operator, conditions=conditions)


@dataclass(frozen=True)
class MarketOutcome:
    id: str
    label: str
    price: float
    probability: float
    volume: float


@dataclass(frozen=True)
class MarketSnapshot:
    slug: str
    title: str
    total_volume: float
    outcomes: tuple[MarketOutcome, ...]
    favorite_outcome_id: str | None

    @property
    def primary_outcome(self) -> MarketOutcome | None:
        if not self.outcomes:
            return None
        return self.outcomes[0]


@dataclass(frozen=True)
class Alert:
    """A user alert watched against one market.

    PRESET alerts carry ``preset_type`` and never a rule; CUSTOM alerts carry
    a rule with at least one condition and never a preset type.
    """

    id: str
    user_id: str
    market_slug: str
    alert_type: str
    preset_type: str | None = None
    rule: AlertRule | None = None
    last_triggered_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.alert_type not in ALERT_TYPES:
            raise ValueError(f"unknown alert type {self.alert_type!r}")
        if self.alert_type == ALERT_TYPE_PRESET:
            if self.preset_type not in PRESET_TYPES:
                raise ValueError(f"preset alert {self.id} has invalid preset {self.preset_type!r}")
            if self.rule is not None:
                raise ValueError(f"preset alert {self.id} must not carry a rule")
            return
        if self.preset_type is not None:
            raise ValueError(f"custom alert {self.id} must not carry a preset type")
        if self.rule is None or not self.rule.conditions:
            raise ValueError(f"custom alert {self.id} requires at least one condition")

    @classmethod
    def preset(
        cls,
        id: str,
        user_id: str,
        market_slug: str,
        preset_type: str,
        last_triggered_at: datetime | None = None,
    ) -> "Alert":
        return cls(
            id=id,
            user_id=user_id,
            market_slug=market_slug,
            alert_type=ALERT_TYPE_PRESET,
            preset_type=preset_type,
            last_triggered_at=last_triggered_at,
        )

    @classmethod
    def custom(
        cls,
        id: str,
        user_id: str,
        market_slug: str,
        rule: AlertRule,
        last_triggered_at: datetime | None = None,
    ) -> "Alert":
        return cls(
            id=id,
            user_id=user_id,
            market_slug=market_slug,
            alert_type=ALERT_TYPE_CUSTOM,
            rule=rule,
            last_triggered_at=last_triggered_at,
        )

    @property
    def is_preset(self) -> bool:
        return self.alert_type == ALERT_TYPE_PRESET


def alert_from_row(row: dict[str, Any]) -> Alert:
    alert_type = str(row.get("type") or "").strip().upper()
    raw_preset = row.get("preset_type")
    preset_type = str(raw_preset).strip().upper() if raw_preset else None
    rule: AlertRule | None = None
    custom_settings = row.get("custom_settings")
    if isinstance(custom_settings, str):
        custom_settings = json.loads(custom_settings)
    if alert_type == ALERT_TYPE_CUSTOM and isinstance(custom_settings, dict):
        rule = AlertRule.from_dict(custom_settings)
    return Alert(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        market_slug=str(row["market_slug"]),
        alert_type=alert_type,
        preset_type=preset_type,
        rule=rule,
        last_triggered_at=row.get("last_triggered_at"),
    )


@dataclass
class BatchResult:
    alerts_loaded: int = 0
    alerts_skipped_invalid: int = 0
    alerts_triggered: int = 0
    fetch_failures: int = 0
    recipients_missing: int = 0
    dispatch_failures: int = 0
    persist_failures: int = 0
    processed: int = 0
    triggered_alert_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "alerts_loaded": self.alerts_loaded,
            "alerts_skipped_invalid": self.alerts_skipped_invalid,
            "alerts_triggered": self.alerts_triggered,
            "fetch_failures": self.fetch_failures,
            "recipients_missing": self.recipients_missing,
            "dispatch_failures": self.dispatch_failures,
            "persist_failures": self.persist_failures,
            "processed": self.processed,
        }

from __future__ import annotations

from html import escape
import logging
from typing import Any

import requests

from .config import Settings
from .models import Alert, MarketSnapshot

logger = logging.getLogger(__name__)


class DeliveryError(RuntimeError):
    pass


def _format_volume(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.3f}".rstrip("0").rstrip(".")


def _format_price(value: float) -> str:
    return f"{value:.2f}"


def _format_prob(value: float) -> str:
    return f"{value * 100:.1f}%"


def _trigger_label(alert: Alert) -> str:
    if alert.is_preset:
        return f"preset {alert.preset_type}"
    return "custom rule"


def build_email_subject(alert: Alert, market: MarketSnapshot) -> str:
    if alert.is_preset and alert.preset_type:
        return f"PolyTrack {alert.preset_type} alert for {market.title}"
    return f"PolyTrack custom alert for {market.title}"


def build_email_html(alert: Alert, market: MarketSnapshot) -> str:
    outcomes_html = "".join(
        (
            f"<li><strong>{escape(outcome.label)}</strong> — "
            f"Price: {_format_price(outcome.price)} | "
            f"Probability: {_format_prob(outcome.probability)} | "
            f"Volume: {_format_volume(outcome.volume)}</li>"
        )
        for outcome in market.outcomes
    )
    lines = [
        "<div>",
        f"  <p>Alert triggered for <strong>{escape(market.title)}</strong> ({escape(market.slug)}).</p>",
        f"  <ul>{outcomes_html}</ul>",
        f"  <p>Total Volume: {_format_volume(market.total_volume)}</p>",
        f"  <p>Triggered via {escape(_trigger_label(alert))}.</p>",
        "</div>",
    ]
    return "\n".join(lines)


class ResendNotifier:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._session = requests.Session()

    def send_email(self, *, sender: str, recipient: str, subject: str, html: str) -> dict[str, Any]:
        url = f"{self.settings.resend_base_url}/emails"
        payload = {"from": sender, "to": [recipient], "subject": subject, "html": html}
        headers = {"Authorization": f"Bearer {self.settings.resend_api_key}"}
        try:
            response = self._session.post(
                url,
                json=payload,
                headers=headers,
                timeout=self.settings.http_timeout_seconds,
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else "unknown"
            logger.warning("resend_send_failed status=%s", status)
            raise DeliveryError(f"email delivery failed: http_{status}") from exc
        except requests.RequestException as exc:
            logger.warning("resend_send_failed", exc_info=True)
            raise DeliveryError("email delivery failed: request_exception") from exc
        try:
            body = response.json()
        except ValueError:
            return {"note": "non_json_response"}
        if not isinstance(body, dict):
            return {"note": "non_dict_response"}
        return {"id": body.get("id")}

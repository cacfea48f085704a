from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import TYPE_CHECKING

from .config import Settings
from .evaluation.cache import MarketSnapshotCache
from .evaluation.conditions import evaluate_alert
from .evaluation.state import AlertStateStore
from .models import Alert, BatchResult, MarketSnapshot, alert_from_row
from .notifications import build_email_html, build_email_subject
from .recipients import RecipientResolver

if TYPE_CHECKING:
    from .db import PostgresStore
    from .notifications import ResendNotifier
    from .polymarket_client import PolymarketClient

logger = logging.getLogger(__name__)


@dataclass
class BatchContext:
    snapshots: MarketSnapshotCache
    recipients: RecipientResolver
    state: AlertStateStore


class AlertPipeline:
    """Evaluates every stored alert once and emails the owners of triggered ones.

    Alerts are handled sequentially in load order. A failure to load alerts,
    or to fetch a market (unless ``isolate_fetch_failures`` is set), aborts the
    batch. Delivery and persistence failures only affect the alert at hand.
    """

    def __init__(
        self,
        settings: Settings,
        client: "PolymarketClient",
        store: "PostgresStore",
        notifier: "ResendNotifier",
        state: AlertStateStore | None = None,
    ) -> None:
        self.settings = settings
        self.client = client
        self.store = store
        self.notifier = notifier
        self.state = state
        self.last_result: BatchResult | None = None

    def new_context(self) -> BatchContext:
        return BatchContext(
            snapshots=MarketSnapshotCache(self.client.get_market_data),
            recipients=RecipientResolver(self.store.get_user_email),
            state=self.state if self.state is not None else AlertStateStore(),
        )

    def load_alerts(self, result: BatchResult) -> list[Alert]:
        alerts: list[Alert] = []
        for row in self.store.fetch_alert_rows():
            try:
                alerts.append(alert_from_row(row))
            except (KeyError, TypeError, ValueError):
                result.alerts_skipped_invalid += 1
                logger.warning("alert_row_invalid alert_id=%s", row.get("id"), exc_info=True)
        result.alerts_loaded = len(alerts)
        return alerts

    def run_batch(
        self, now_utc: datetime | None = None, context: BatchContext | None = None
    ) -> BatchResult:
        result = BatchResult()
        alerts = self.load_alerts(result)
        if not alerts:
            logger.info("alert_batch_empty")
            self.last_result = result
            return result

        ctx = context or self.new_context()
        for alert in alerts:
            snapshot = self._fetch_snapshot(alert, ctx, result)
            if snapshot is None:
                continue
            if not evaluate_alert(alert, snapshot, ctx.state):
                continue
            result.alerts_triggered += 1
            self._dispatch(alert, snapshot, ctx, result, now_utc)

        logger.info(
            "alert_batch_complete loaded=%s triggered=%s processed=%s recipients_missing=%s dispatch_failures=%s persist_failures=%s market_fetches=%s",
            result.alerts_loaded,
            result.alerts_triggered,
            result.processed,
            result.recipients_missing,
            result.dispatch_failures,
            result.persist_failures,
            ctx.snapshots.upstream_calls,
        )
        self.last_result = result
        return result

    def _fetch_snapshot(
        self, alert: Alert, ctx: BatchContext, result: BatchResult
    ) -> MarketSnapshot | None:
        if not self.settings.isolate_fetch_failures:
            return ctx.snapshots.fetch(alert.market_slug)
        try:
            return ctx.snapshots.fetch(alert.market_slug)
        except Exception:
            result.fetch_failures += 1
            logger.exception(
                "market_fetch_failed alert_id=%s slug=%s", alert.id, alert.market_slug
            )
            return None

    def _dispatch(
        self,
        alert: Alert,
        snapshot: MarketSnapshot,
        ctx: BatchContext,
        result: BatchResult,
        now_utc: datetime | None,
    ) -> None:
        recipient = ctx.recipients.resolve(alert.user_id)
        if not recipient:
            result.recipients_missing += 1
            logger.warning(
                "alert_recipient_missing alert_id=%s user_id=%s", alert.id, alert.user_id
            )
            return

        try:
            self.notifier.send_email(
                sender=self.settings.alert_sender,
                recipient=recipient,
                subject=build_email_subject(alert, snapshot),
                html=build_email_html(alert, snapshot),
            )
        except Exception:
            result.dispatch_failures += 1
            logger.exception("alert_dispatch_failed alert_id=%s", alert.id)
            return

        triggered_at = now_utc or datetime.now(timezone.utc)
        try:
            updated = self.store.mark_alert_triggered(alert.id, triggered_at)
            if not updated:
                logger.warning("alert_trigger_update_missed alert_id=%s", alert.id)
        except Exception:
            result.persist_failures += 1
            logger.exception("alert_trigger_update_failed alert_id=%s", alert.id)

        # The email is already out, so the alert counts even when the timestamp write failed.
        result.processed += 1
        result.triggered_alert_ids.append(alert.id)
        logger.info(
            "alert_triggered alert_id=%s slug=%s type=%s",
            alert.id,
            alert.market_slug,
            alert.preset_type or alert.alert_type,
        )

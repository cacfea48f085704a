from __future__ import annotations

from datetime import datetime
import logging
from pathlib import Path
from urllib.parse import urlsplit

import psycopg

logger = logging.getLogger(__name__)


class PostgresStore:
    def __init__(self, database_url: str) -> None:
        self.database_url = database_url
        try:
            self.conn = psycopg.connect(database_url, connect_timeout=15)
        except psycopg.OperationalError as exc:
            host = urlsplit(database_url).hostname or "unknown-host"
            raise RuntimeError(
                f"Postgres connection failed for host '{host}'. "
                "Verify DATABASE_URL points at the Supabase database."
            ) from exc

    def close(self) -> None:
        self.conn.close()

    def ensure_schema(self) -> None:
        schema_sql = Path(__file__).with_name("schema.sql").read_text(encoding="utf-8")
        with self.conn.cursor() as cur:
            cur.execute(schema_sql)
        self.conn.commit()

    def fetch_alert_rows(self) -> list[dict[str, object]]:
        try:
            with self.conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT id, user_id, market_slug, type, preset_type, custom_settings,
                           last_triggered_at
                    FROM public.alerts
                    ORDER BY created_at ASC, id ASC
                    """
                )
                rows = cur.fetchall()
        finally:
            # Reads never leave a transaction open, failed or not.
            self.conn.rollback()
        output: list[dict[str, object]] = []
        for row in rows:
            output.append(
                {
                    "id": row[0],
                    "user_id": row[1],
                    "market_slug": row[2],
                    "type": row[3],
                    "preset_type": row[4],
                    "custom_settings": row[5],
                    "last_triggered_at": row[6],
                }
            )
        return output

    def get_user_email(self, user_id: str) -> str | None:
        try:
            with self.conn.cursor() as cur:
                cur.execute("SELECT email FROM auth.users WHERE id = %s", (user_id,))
                row = cur.fetchone()
        finally:
            self.conn.rollback()
        if row is None:
            return None
        return row[0]

    def mark_alert_triggered(self, alert_id: str, triggered_at: datetime) -> bool:
        try:
            with self.conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE public.alerts
                    SET last_triggered_at = %s
                    WHERE id = %s
                    RETURNING id
                    """,
                    (triggered_at, alert_id),
                )
                updated = cur.fetchone() is not None
            self.conn.commit()
        except psycopg.Error:
            self.conn.rollback()
            raise
        return updated

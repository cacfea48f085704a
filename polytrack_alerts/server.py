from __future__ import annotations

import hmac
import logging
from typing import Callable

from flask import Flask, jsonify, request

from .config import ConfigError, Settings
from .pipeline import AlertPipeline

logger = logging.getLogger(__name__)


def _bearer_token(header_value: str | None) -> str:
    if not header_value:
        return ""
    return header_value.replace("Bearer ", "", 1).strip()


def is_cron_authorized(header_value: str | None, expected_secret: str) -> bool:
    if not expected_secret:
        raise ConfigError(["CRON_SECRET"])
    token = _bearer_token(header_value)
    if not token:
        return False
    return hmac.compare_digest(token.encode("utf-8"), expected_secret.encode("utf-8"))


def create_app(settings: Settings, pipeline_factory: Callable[[], AlertPipeline]) -> Flask:
    if not settings.cron_secret:
        raise ConfigError(["CRON_SECRET"])

    app = Flask(__name__)

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"ok": True})

    @app.route("/api/cron", methods=["POST"])
    def run_cron():
        if not is_cron_authorized(request.headers.get("Authorization"), settings.cron_secret):
            logger.warning("cron_unauthorized remote=%s", request.remote_addr)
            return jsonify({"error": "UNAUTHORIZED"}), 401
        try:
            result = pipeline_factory().run_batch()
        except Exception:
            logger.exception("cron_batch_failed")
            return jsonify({"error": "CRON_FAILED"}), 500
        return jsonify({"success": True, "processed": result.processed})

    return app

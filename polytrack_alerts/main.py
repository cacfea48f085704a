from __future__ import annotations

import argparse
import json
import logging
import sys

from .config import ConfigError, Settings, redact_database_url
from .polymarket_client import PolymarketClient


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="PolyTrack alert evaluation service")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("health-check", help="Run Polymarket API connectivity check")
    subparsers.add_parser("init-db", help="Create database schema")
    subparsers.add_parser("run-once", help="Evaluate every alert once and exit")
    subparsers.add_parser("serve", help="Serve the POST /api/cron trigger endpoint")
    return parser


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    logger = logging.getLogger(__name__)
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    logger.info(
        "startup command=%s polymarket_stub_mode=%s polymarket_base_url=%s database_source=%s database_target=%s isolate_fetch_failures=%s",
        args.command,
        settings.polymarket_stub_mode,
        settings.polymarket_base_url,
        settings.database_url_source,
        redact_database_url(settings.database_url),
        settings.isolate_fetch_failures,
    )

    if args.command == "health-check":
        client = PolymarketClient(settings)
        print(json.dumps(client.health_check(), indent=2))
        return 0

    try:
        if args.command == "init-db":
            missing = [
                key
                for key in settings.missing_credentials(require_cron_secret=False)
                if key == "DATABASE_URL"
            ]
            if missing:
                raise ConfigError(missing)
        else:
            settings.validate(require_cron_secret=args.command == "serve")
    except ConfigError as exc:
        logger.error("config_invalid missing=%s", ",".join(exc.missing))
        return 2

    from .db import PostgresStore
    from .evaluation.state import AlertStateStore
    from .notifications import ResendNotifier
    from .pipeline import AlertPipeline

    store = PostgresStore(settings.database_url)
    try:
        if args.command == "init-db":
            store.ensure_schema()
            print("Schema initialized")
            return 0

        pipeline = AlertPipeline(
            settings,
            PolymarketClient(settings),
            store,
            ResendNotifier(settings),
            # A long-running server keeps alert memory between batches.
            state=AlertStateStore() if args.command == "serve" else None,
        )

        if args.command == "run-once":
            try:
                result = pipeline.run_batch()
            except Exception:
                logger.exception("alert_batch_failed")
                print(json.dumps({"error": "CRON_FAILED"}, indent=2))
                return 1
            print(json.dumps({"success": True, **result.to_dict()}, indent=2))
            return 0

        if args.command == "serve":
            from .server import create_app

            app = create_app(settings, lambda: pipeline)
            app.run(host=settings.server_host, port=settings.server_port, threaded=False)
            return 0
    finally:
        store.close()

    return 1


if __name__ == "__main__":
    sys.exit(main())

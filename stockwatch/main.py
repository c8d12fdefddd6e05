"""Command-line interface entry point for the StockWatch monitor."""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import threading
import uuid
from pathlib import Path
from typing import Any, Iterable

import uvicorn
from dotenv import load_dotenv
from sqlalchemy.orm import Session, sessionmaker

from stockwatch.alerts.gate import NotificationGate
from stockwatch.alerts.notifier import Notifier
from stockwatch.cache import TTLCache
from stockwatch.catalog import ProductCatalog
from stockwatch.config import Settings, load_config, load_settings
from stockwatch.errors import ConfigError, LocationValidationError
from stockwatch.health import HealthMonitor
from stockwatch.logging_config import get_logger
from stockwatch.scheduler import MonitoringScheduler
from stockwatch.storage.db import get_engine, init_db, make_session
from stockwatch.storage.ledger import TrackingLedger
from stockwatch.storefront.catalog import CatalogScraper
from stockwatch.storefront.monitor import ItemMonitor
from stockwatch.tracking import TrackingService, check_now

LOGGER = get_logger(__name__)

HEALTH_LOG_FILE = Path(os.getenv("HEALTH_LOG_FILE", "logs/health.log"))


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the application."""

    parser = argparse.ArgumentParser(
        description="Monitor storefront product pages and alert subscribers on restock."
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to the YAML configuration file (default: $STOCKWATCH_CONFIG or config.yml).",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single monitoring tick instead of the recurring schedule.",
    )
    parser.add_argument(
        "--check",
        metavar="URL",
        help="Check one product page immediately and print the result.",
    )
    parser.add_argument(
        "--location",
        metavar="CODE",
        help="Delivery location code used with --check.",
    )
    parser.add_argument(
        "--refresh-catalog",
        action="store_true",
        help="Scrape the collection page and rewrite the product catalog.",
    )
    parser.add_argument("--register", metavar="SUBSCRIBER", help="Register a subscriber id.")
    parser.add_argument(
        "--select",
        nargs=2,
        metavar=("SUBSCRIBER", "PRODUCT"),
        help="Select a catalog product for a subscriber.",
    )
    parser.add_argument(
        "--track",
        nargs=2,
        metavar=("SUBSCRIBER", "ITEM"),
        help="Start tracking a previously selected item.",
    )
    parser.add_argument(
        "--untrack",
        nargs=2,
        metavar=("SUBSCRIBER", "ITEM"),
        help="Stop tracking an item.",
    )
    parser.add_argument(
        "--mute",
        nargs=2,
        metavar=("SUBSCRIBER", "ITEM"),
        help="Keep checking an item but stop sending its restock alerts.",
    )
    parser.add_argument(
        "--unmute",
        nargs=2,
        metavar=("SUBSCRIBER", "ITEM"),
        help="Resume restock alerts for an item.",
    )
    parser.add_argument(
        "--set-location",
        nargs=2,
        metavar=("SUBSCRIBER", "CODE"),
        help="Validate and store a subscriber's delivery location code.",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print tracking statistics as JSON and exit.",
    )
    parser.add_argument(
        "--dashboard",
        action="store_true",
        help="Serve the status API while the scheduler runs.",
    )

    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.location and not args.check:
        parser.error("--location requires --check")

    return args


def _is_admin_command(args: argparse.Namespace) -> bool:
    return bool(
        args.check
        or args.refresh_catalog
        or args.register
        or args.select
        or args.track
        or args.untrack
        or args.mute
        or args.unmute
        or args.set_location
        or args.stats
    )


def _build_ledger(settings: Settings) -> TrackingLedger:
    engine = get_engine(settings.sqlite_path)
    init_db(engine)
    LOGGER.info("Database initialized at %s", settings.sqlite_path)
    session_factory: sessionmaker[Session] = make_session(engine)
    return TrackingLedger(session_factory)


def _start_dashboard_background(app: Any, host: str = "0.0.0.0", port: int = 8000) -> tuple[uvicorn.Server, threading.Thread]:
    LOGGER.info("Starting dashboard thread | host=%s port=%s", host, port)
    config = uvicorn.Config(app, host=host, port=port, reload=False, log_config=None)
    server = uvicorn.Server(config)

    def run_dashboard() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            loop.run_until_complete(server.serve())
        finally:
            loop.close()

    thread = threading.Thread(target=run_dashboard, name="dashboard-server", daemon=True)
    thread.start()
    return server, thread


def _stop_dashboard_background(
    server: uvicorn.Server | None, thread: threading.Thread | None
) -> tuple[uvicorn.Server | None, threading.Thread | None]:
    if server is not None:
        server.should_exit = True
    if thread is not None:
        thread.join(timeout=5)
        LOGGER.info("Dashboard thread joined")
    return None, None


async def _run_admin_command(
    args: argparse.Namespace,
    settings: Settings,
    ledger: TrackingLedger,
    catalog: ProductCatalog,
) -> int:
    service = TrackingService(ledger, catalog)

    if args.check:
        async with ItemMonitor() as monitor:
            print(await check_now(monitor, args.check, args.location or settings.default_location_code))
        return 0

    if args.refresh_catalog:
        scraper = CatalogScraper(
            collection_url=settings.collection_url,
            location_code=settings.default_location_code,
        )
        count = await catalog.refresh(scraper)
        print(f"Catalog products loaded: {count}")
        return 0 if count else 1

    if args.register:
        service.register_subscriber(args.register)
        print(f"Registered {args.register}")
        return 0

    if args.select:
        subscriber_id, product_id = args.select
        try:
            record = service.select_item(subscriber_id, product_id)
        except KeyError as exc:
            LOGGER.error("Selection failed: %s", exc)
            return 1
        print(f"Selected {record.item_name} for {subscriber_id}")
        return 0

    if args.track or args.untrack:
        subscriber_id, item_id = args.track or args.untrack
        action = service.start_tracking if args.track else service.stop_tracking
        if not action(subscriber_id, item_id):
            LOGGER.error("No tracking row for subscriber=%s item=%s; select it first", subscriber_id, item_id)
            return 1
        print(f"Tracking {'started' if args.track else 'stopped'} for {item_id}")
        return 0

    if args.mute or args.unmute:
        subscriber_id, item_id = args.mute or args.unmute
        enabled = bool(args.unmute)
        if not service.set_notifications(subscriber_id, item_id, enabled):
            LOGGER.error("No tracking row for subscriber=%s item=%s; select it first", subscriber_id, item_id)
            return 1
        print(f"Alerts {'enabled' if enabled else 'muted'} for {item_id}")
        return 0

    if args.set_location:
        subscriber_id, code = args.set_location
        try:
            check = await service.set_location_async(subscriber_id, code)
        except (LocationValidationError, KeyError) as exc:
            LOGGER.error("Location not updated: %s", exc)
            return 1
        region = check.region.describe() if check.region is not None else code
        print(f"Location set to {code} ({region})")
        return 0

    print(json.dumps(ledger.get_tracking_statistics(), indent=2))
    return 0


async def _run_monitor(args: argparse.Namespace, settings: Settings, ledger: TrackingLedger) -> int:
    health = HealthMonitor(run_id=uuid.uuid4().hex[:12], log_path=HEALTH_LOG_FILE)
    gate = NotificationGate(settings.cooldown_minutes, enabled=settings.notifications_enabled)
    notifier = Notifier(settings.telegram_token)

    async with ItemMonitor() as monitor:
        scheduler = MonitoringScheduler(
            ledger,
            monitor,
            gate,
            notifier,
            default_location=settings.default_location_code,
            interval_minutes=settings.check_interval_minutes,
            health=health,
            cache=TTLCache(),
        )

        if args.once:
            report = await scheduler.run_tick()
            print(json.dumps(report.as_dict(), indent=2))
            return 0

        dashboard_server: uvicorn.Server | None = None
        dashboard_thread: threading.Thread | None = None
        if args.dashboard:
            from stockwatch.dashboard import create_app

            app = create_app(ledger, scheduler)
            dashboard_server, dashboard_thread = _start_dashboard_background(
                app, settings.dashboard_host, settings.dashboard_port
            )
            print(f"Status API running at http://localhost:{settings.dashboard_port}")

        scheduler.start()
        try:
            await asyncio.Event().wait()
        except (KeyboardInterrupt, SystemExit, asyncio.CancelledError):
            LOGGER.info("Shutdown signal received; stopping scheduler")
        finally:
            scheduler.stop()
            _stop_dashboard_background(dashboard_server, dashboard_thread)
    return 0


async def _async_main(argv: Iterable[str] | None = None) -> int:
    args = parse_args(argv)
    load_dotenv()

    config = load_config(args.config)
    admin = _is_admin_command(args)
    settings = load_settings(config, require_token=not admin)
    LOGGER.info(
        "Parsed arguments: once=%s admin=%s interval=%s cooldown=%s db=%s",
        args.once,
        admin,
        settings.check_interval_minutes,
        settings.cooldown_minutes,
        settings.sqlite_path,
    )

    ledger = _build_ledger(settings)
    if admin:
        catalog = ProductCatalog.from_file(settings.catalog_path)
        return await _run_admin_command(args, settings, ledger, catalog)
    return await _run_monitor(args, settings, ledger)


def main(argv: Iterable[str] | None = None) -> None:
    try:
        code = asyncio.run(_async_main(argv))
    except ConfigError as exc:
        LOGGER.error("Configuration error: %s", exc)
        raise SystemExit(1) from exc
    except KeyboardInterrupt:  # pragma: no cover - interactive safety
        LOGGER.info("Interrupted by user")
        return
    if code:
        raise SystemExit(code)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
updown-monitor: health dashboard for the up/down market-making bot

Usage:
    # Serve the JSON API / SSE stream
    python -m updown_monitor.monitor serve

    # One-shot health report for the last 6 hours of BTC markets
    python -m updown_monitor.monitor report --range 6h --asset BTC

    # Load a JSON-lines export into the local store
    python -m updown_monitor.monitor ingest fill_logs fills.jsonl
"""
from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

# Load environment variables FIRST, before any imports that read environment
from dotenv import load_dotenv
load_dotenv()

from updown_monitor.config import ConfigError, MonitorConfig, load_config
from updown_monitor.dashboard import DashboardServer
from updown_monitor.dashboard.data_collector import HealthDataCollector
from updown_monitor.health import TIME_RANGES
from updown_monitor.logging_utils import setup_logging
from updown_monitor.store import TABLES, MonitorDatabase, open_store

logger = logging.getLogger(__name__)


def read_jsonl(path: Path) -> list[dict]:
    """Rows from a JSON-lines file; blank lines are skipped."""
    rows = []
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                row = json.loads(line)
            except ValueError as e:
                raise ValueError(f"{path}:{lineno}: invalid JSON ({e})") from None
            if not isinstance(row, dict):
                raise ValueError(f"{path}:{lineno}: expected an object")
            rows.append(row)
    return rows


def cmd_serve(args, monitor_cfg: MonitorConfig) -> int:
    store = open_store(load_config(args.config).store)
    collector = HealthDataCollector(store, monitor_cfg)
    dash = monitor_cfg.dashboard
    server = DashboardServer(
        collector,
        host=args.host or dash.host,
        port=args.port if args.port is not None else dash.port,
        stream_interval_sec=dash.stream_interval_sec,
    )

    stop = threading.Event()

    def signal_handler(sig, frame):
        logger.info("Received signal %s, shutting down...", sig)
        stop.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    server.start()
    try:
        stop.wait()
    finally:
        server.stop()
        store.close()
    return 0


def cmd_report(args, monitor_cfg: MonitorConfig) -> int:
    store = open_store(load_config(args.config).store)
    try:
        collector = HealthDataCollector(store, monitor_cfg)
        report = collector.collect_health(
            time_range=args.range,
            asset=args.asset,
            market_filter=args.market,
        )
    finally:
        store.close()
    print(json.dumps(report, indent=2))
    return 0


def cmd_ingest(args, monitor_cfg: MonitorConfig) -> int:
    store_cfg = load_config(args.config).store
    if store_cfg.kind != "sqlite":
        logger.error("ingest writes to the local SQLite store; store.kind is %s", store_cfg.kind)
        return 2

    rows = read_jsonl(Path(args.file))
    db = MonitorDatabase(store_cfg.db_path, max_rows=store_cfg.max_rows)
    try:
        inserted = db.insert_rows(args.table, rows)
    finally:
        db.close()
    logger.info("Ingested %d of %d rows from %s", inserted, len(rows), args.file)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Health monitor for the up/down market-making bot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging (DEBUG level)")
    parser.add_argument("-c", "--config", default=None, help="YAML config path (default: $UPDOWN_MONITOR_CONFIG or config.yaml)")

    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="run the dashboard API server")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.set_defaults(func=cmd_serve)

    report = sub.add_parser("report", help="print one health snapshot as JSON")
    report.add_argument("--range", default="1h", choices=sorted(TIME_RANGES))
    report.add_argument("--asset", default=None)
    report.add_argument("--market", default=None, help="market id substring")
    report.set_defaults(func=cmd_report)

    ingest = sub.add_parser("ingest", help="load a JSON-lines export into the SQLite store")
    ingest.add_argument("table", choices=sorted(TABLES))
    ingest.add_argument("file")
    ingest.set_defaults(func=cmd_ingest)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else None)

    if args.config is None:
        from updown_monitor.config.loader import CONFIG_PATH
        args.config = CONFIG_PATH

    try:
        return args.func(args, MonitorConfig())
    except (ConfigError, ValueError) as e:
        logger.error("%s", e)
        return 2
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())

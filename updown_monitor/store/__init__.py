"""Row stores the monitor reads bot history from."""
from __future__ import annotations

import logging
from typing import Union

from updown_monitor.config import StoreConfig
from updown_monitor.store.database import TABLES, MonitorDatabase
from updown_monitor.store.postgrest_client import PostgrestClient, StoreError

logger = logging.getLogger(__name__)

RowStore = Union[MonitorDatabase, PostgrestClient]


def open_store(cfg: StoreConfig) -> RowStore:
    """Build the store selected by ``cfg.kind``."""
    if cfg.kind == "postgrest":
        logger.info("Using PostgREST store at %s", cfg.rest_url)
        return PostgrestClient(cfg)
    return MonitorDatabase(cfg.db_path, max_rows=cfg.max_rows)


__all__ = [
    "MonitorDatabase",
    "PostgrestClient",
    "RowStore",
    "StoreError",
    "TABLES",
    "open_store",
]

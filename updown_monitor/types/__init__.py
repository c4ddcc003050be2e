# updown_monitor/types/__init__.py
"""Record types shared by the store, the engines and the dashboard."""

from updown_monitor.types.records import (
    BotEvent,
    Fill,
    InventorySnapshot,
    Order,
    Side,
    TradeResult,
    as_float,
)

__all__ = [
    "BotEvent",
    "Fill",
    "InventorySnapshot",
    "Order",
    "Side",
    "TradeResult",
    "as_float",
]

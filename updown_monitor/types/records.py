"""Row records consumed by the analytics engines.

All timestamps are epoch milliseconds. ``from_row`` accepts a raw row dict
(from SQLite or the REST store) and fills absent columns with neutral
defaults so the engines never see ``None`` where they do arithmetic.
"""
from __future__ import annotations

import json
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Optional

Side = Literal["UP", "DOWN"]


def as_float(value: Any, default: float = 0.0) -> float:
    """Numeric value of a row field; missing, malformed or non-finite values give ``default``."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _ts(value: Any) -> int:
    """Coerce an epoch-ms number or ISO-8601 string to epoch ms."""
    if value is None:
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    s = str(value).replace("Z", "+00:00")
    try:
        return int(datetime.fromisoformat(s).timestamp() * 1000)
    except ValueError:
        return 0


def _json_obj(value: Any) -> Optional[dict]:
    if value is None or isinstance(value, dict):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return None
        return parsed if isinstance(parsed, dict) else None
    return None


@dataclass(frozen=True)
class BotEvent:
    id: str
    ts: int
    event_type: str
    asset: str
    market_id: Optional[str] = None
    reason_code: Optional[str] = None
    data: Optional[dict] = None
    run_id: Optional[str] = None
    correlation_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "BotEvent":
        return cls(
            id=str(row.get("id") or ""),
            ts=_ts(row.get("ts")),
            event_type=str(row.get("event_type") or ""),
            asset=str(row.get("asset") or ""),
            market_id=row.get("market_id"),
            reason_code=row.get("reason_code"),
            data=_json_obj(row.get("data")),
            run_id=row.get("run_id"),
            correlation_id=row.get("correlation_id"),
        )


@dataclass(frozen=True)
class Order:
    id: str
    market_id: str
    asset: str
    side: str
    price: float
    qty: float
    status: str
    created_ts: int
    intent_type: str = ""
    filled_qty: Optional[float] = None
    last_update_ts: int = 0

    @classmethod
    def from_row(cls, row: dict) -> "Order":
        filled = row.get("filled_qty")
        return cls(
            id=str(row.get("id") or ""),
            market_id=str(row.get("market_id") or ""),
            asset=str(row.get("asset") or ""),
            side=str(row.get("side") or ""),
            price=as_float(row.get("price")),
            qty=as_float(row.get("qty")),
            status=str(row.get("status") or "").upper(),
            created_ts=_ts(row.get("created_ts")),
            intent_type=str(row.get("intent_type") or ""),
            filled_qty=None if filled is None else as_float(filled),
            last_update_ts=_ts(row.get("last_update_ts")),
        )


@dataclass(frozen=True)
class Fill:
    id: str
    ts: int
    asset: str
    market_id: str
    side: str
    intent: str
    fill_qty: float
    fill_price: float
    fill_notional: float
    order_id: Optional[str] = None

    @property
    def is_up(self) -> bool:
        """UP leg if the intent names it or the side is literally 'up'."""
        return "up" in self.intent.lower() or self.side.lower() == "up"

    @property
    def is_buy(self) -> bool:
        # UP/DOWN sides are outcome-token purchases
        return self.side.lower() in ("buy", "up", "down")

    @classmethod
    def from_row(cls, row: dict) -> "Fill":
        qty = as_float(row.get("fill_qty"))
        price = as_float(row.get("fill_price"))
        notional = row.get("fill_notional")
        return cls(
            id=str(row.get("id") or ""),
            ts=_ts(row.get("ts")),
            asset=str(row.get("asset") or ""),
            market_id=str(row.get("market_id") or ""),
            side=str(row.get("side") or ""),
            intent=str(row.get("intent") or ""),
            fill_qty=qty,
            fill_price=price,
            fill_notional=qty * price if notional is None else as_float(notional),
            order_id=row.get("order_id"),
        )


@dataclass(frozen=True)
class InventorySnapshot:
    id: str
    ts: int
    asset: str
    market_id: str
    up_shares: float
    down_shares: float
    state: str
    pair_cost: Optional[float] = None

    @classmethod
    def from_row(cls, row: dict) -> "InventorySnapshot":
        pair_cost = row.get("pair_cost")
        return cls(
            id=str(row.get("id") or ""),
            ts=_ts(row.get("ts")),
            asset=str(row.get("asset") or ""),
            market_id=str(row.get("market_id") or ""),
            up_shares=as_float(row.get("up_shares")),
            down_shares=as_float(row.get("down_shares")),
            # snapshot_logs names the column bot_state
            state=str(row.get("state") or row.get("bot_state") or ""),
            pair_cost=None if pair_cost is None else as_float(pair_cost),
        )


@dataclass(frozen=True)
class TradeResult:
    """A settled market outcome for the bot."""

    id: str
    asset: str
    market_slug: str
    profit_loss: float
    total_invested: float
    created_at_ms: int

    @classmethod
    def from_row(cls, row: dict) -> "TradeResult":
        return cls(
            id=str(row.get("id") or ""),
            asset=str(row.get("asset") or ""),
            market_slug=str(row.get("market_slug") or ""),
            profit_loss=as_float(row.get("profit_loss")),
            total_invested=as_float(row.get("total_invested")),
            created_at_ms=_ts(row.get("created_at_ms", row.get("created_at"))),
        )

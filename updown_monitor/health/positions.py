"""Position reconstruction and skew helpers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from updown_monitor.types import Fill


@dataclass
class MarketPosition:
    """
    Per-market position rebuilt from fills.

    Average prices cover buys only; sells reduce shares without touching
    the cost of what was bought.
    """

    up_shares: float = 0.0
    down_shares: float = 0.0
    up_total_cost: float = 0.0
    down_total_cost: float = 0.0

    @property
    def up_avg_price(self) -> float:
        return self.up_total_cost / self.up_shares if self.up_shares > 0 else 0.0

    @property
    def down_avg_price(self) -> float:
        return self.down_total_cost / self.down_shares if self.down_shares > 0 else 0.0

    @property
    def combined_price(self) -> float:
        """Sum of both legs' average entry; below 1.0 locks in profit at settlement."""
        return self.up_avg_price + self.down_avg_price

    @property
    def total_shares(self) -> float:
        return self.up_shares + self.down_shares

    @property
    def skew_pct(self) -> float:
        return compute_skew_pct(self.up_shares, self.down_shares)

    def to_dict(self) -> dict:
        return {
            "up_shares": self.up_shares,
            "down_shares": self.down_shares,
            "up_avg_price": self.up_avg_price,
            "down_avg_price": self.down_avg_price,
            "combined_price": self.combined_price,
            "skew_pct": self.skew_pct,
        }


def compute_skew_pct(up_shares: float, down_shares: float) -> float:
    """Absolute imbalance between the legs as a percentage of the total."""
    total = up_shares + down_shares
    if total == 0:
        return 0.0
    return abs(up_shares - down_shares) * 100.0 / total


def reconstruct_positions_from_fills(fills: Iterable[Fill]) -> dict[str, MarketPosition]:
    """Running up/down balance per market, applied in timestamp order."""
    positions: dict[str, MarketPosition] = {}

    for fill in sorted(fills, key=lambda f: f.ts):
        pos = positions.setdefault(fill.market_id, MarketPosition())

        if fill.is_up:
            if fill.is_buy:
                pos.up_shares += fill.fill_qty
                pos.up_total_cost += fill.fill_notional
            else:
                pos.up_shares = max(0.0, pos.up_shares - fill.fill_qty)
        else:
            if fill.is_buy:
                pos.down_shares += fill.fill_qty
                pos.down_total_cost += fill.fill_notional
            else:
                pos.down_shares = max(0.0, pos.down_shares - fill.fill_qty)

    return positions

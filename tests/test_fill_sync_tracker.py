import pytest

from updown_monitor.fillsync import FillSyncTracker, replay_fills
from updown_monitor.types import Fill


def _record(tracker, sides):
    for i, side in enumerate(sides):
        tracker.record_fill(side, 5.0, 0.48, "btc-updown-15m-1767225600", timestamp=1000.0 + i)


def test_three_up_fills_block_up_and_allow_down():
    tracker = FillSyncTracker(window_size=5, max_streak=3)
    _record(tracker, ["UP", "UP", "UP"])

    up = tracker.should_quote("UP")
    assert up.allowed is False
    assert up.reason == "Fill streak: 3x UP - waiting for DOWN fill"
    assert tracker.should_quote("DOWN").allowed is True


def test_streak_on_down_blocks_only_down():
    tracker = FillSyncTracker(window_size=5, max_streak=3)
    _record(tracker, ["UP", "DOWN", "DOWN", "DOWN", "DOWN"])

    assert tracker.should_quote("DOWN").allowed is False
    assert tracker.should_quote("UP").allowed is True
    assert tracker.get_streak_info() == (4, "DOWN")


def test_insufficient_history_allows_both_sides():
    tracker = FillSyncTracker(window_size=5, max_streak=3)
    _record(tracker, ["UP", "UP"])

    for side in ("UP", "DOWN"):
        result = tracker.should_quote(side)
        assert result.allowed is True
        assert result.reason == "Insufficient fill history"


def test_broken_streak_allows_quoting():
    tracker = FillSyncTracker(window_size=5, max_streak=3)
    _record(tracker, ["UP", "UP", "UP", "DOWN"])

    result = tracker.should_quote("UP")
    assert result.allowed is True
    assert result.reason == "OK"
    stats = tracker.get_stats()
    assert stats.current_streak == 1
    assert stats.streak_side == "DOWN"


def test_streak_scans_past_the_window():
    tracker = FillSyncTracker(window_size=2, max_streak=2)
    _record(tracker, ["UP"] * 6)

    stats = tracker.get_stats()
    assert stats.total_recent == 2
    assert stats.recent_up == 2
    assert stats.current_streak == 6


def test_buffer_keeps_only_last_twenty():
    tracker = FillSyncTracker()
    for i in range(55):
        tracker.record_fill("UP" if i % 2 else "DOWN", 1.0, 0.5, "m", timestamp=float(i))
        assert len(tracker) <= 20

    fills = tracker.get_recent_fills()
    assert len(fills) == 20
    assert [f.timestamp for f in fills] == [float(i) for i in range(35, 55)]


def test_window_counts():
    tracker = FillSyncTracker(window_size=5, max_streak=3)
    _record(tracker, ["DOWN", "DOWN", "UP", "DOWN", "UP", "UP", "DOWN"])

    stats = tracker.get_stats()
    assert stats.total_recent == 5
    assert stats.recent_up == 3
    assert stats.recent_down == 2


def test_reset_clears_history():
    tracker = FillSyncTracker()
    _record(tracker, ["UP", "UP", "UP", "UP"])
    tracker.reset()

    stats = tracker.get_stats()
    assert stats.total_recent == 0
    assert stats.current_streak == 0
    assert stats.streak_side is None
    assert tracker.get_recent_fills() == []


def test_configure_changes_threshold():
    tracker = FillSyncTracker(window_size=5, max_streak=3)
    _record(tracker, ["UP", "UP", "UP"])
    tracker.configure(window_size=5, max_streak=4)

    assert tracker.should_quote("UP").allowed is True


def test_invalid_side_rejected():
    tracker = FillSyncTracker()
    with pytest.raises(ValueError):
        tracker.record_fill("SIDEWAYS", 1.0, 0.5, "m")


def test_lowercase_side_is_normalized():
    tracker = FillSyncTracker(max_streak=1)
    tracker.record_fill("up", 1.0, 0.5, "m")
    assert tracker.should_quote("up").allowed is False


def _fill(ts, side, intent="", market="btc-updown-15m-1767225600"):
    return Fill(
        id=str(ts), ts=ts, asset="BTC", market_id=market, side=side, intent=intent,
        fill_qty=5.0, fill_price=0.5, fill_notional=2.5,
    )


def test_replay_fills_orders_by_time_and_skips_sells():
    fills = [
        _fill(3000, "BUY", "ENTRY_UP"),
        _fill(1000, "BUY", "ENTRY_UP"),
        _fill(2000, "SELL", "EXIT_DOWN"),
        _fill(1500, "BUY", "ENTRY_UP"),
        _fill(2500, "BUY", "ENTRY_UP", market="eth-updown-15m-1767225600"),
    ]
    tracker = replay_fills(fills, market_id="btc-updown-15m-1767225600")

    assert [f.timestamp for f in tracker.get_recent_fills()] == [1.0, 1.5, 3.0]
    assert tracker.should_quote("UP").allowed is False


def test_replay_treats_outcome_sides_as_buys():
    tracker = replay_fills([_fill(1, "UP"), _fill(2, "DOWN"), _fill(3, "DOWN")])
    stats = tracker.get_stats()
    assert (stats.recent_up, stats.recent_down) == (1, 2)


@pytest.mark.parametrize("kwargs", [
    {"window_size": 0},
    {"max_streak": 0},
    {"max_fills": 0},
])
def test_constructor_rejects_empty_settings(kwargs):
    with pytest.raises(ValueError):
        FillSyncTracker(**kwargs)


def test_configure_rejects_zero_window():
    tracker = FillSyncTracker(window_size=5, max_streak=3)
    _record(tracker, ["UP", "UP", "UP"])

    with pytest.raises(ValueError):
        tracker.configure(window_size=0, max_streak=3)
    # previous settings stay in force
    assert tracker.window_size == 5
    assert tracker.should_quote("UP").allowed is False

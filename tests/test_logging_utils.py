import logging

from updown_monitor.logging_utils import GRAY, LEVEL_COLORS, RESET, ColoredFormatter


def _record(level=logging.WARNING):
    return logging.LogRecord("updown_monitor.test", level, __file__, 1, "cap %s", ("breached",), None)


def test_colored_level_and_timestamp():
    text = ColoredFormatter().format(_record())

    assert f"{LEVEL_COLORS[logging.WARNING]}WARNING{RESET}" in text
    assert text.startswith(GRAY + "[")
    assert text.endswith("updown_monitor.test: cap breached")


def test_plain_output_without_colors():
    record = _record(logging.ERROR)
    text = ColoredFormatter(use_colors=False).format(record)

    assert "\033[" not in text
    assert "[ERROR]" in text
    # the record is left untouched for other handlers
    assert record.levelname == "ERROR"


def test_custom_levels_are_not_colored():
    text = ColoredFormatter().format(_record(25))
    assert "\033[" not in text

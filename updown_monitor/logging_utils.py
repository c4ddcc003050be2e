# updown_monitor/logging_utils.py
from __future__ import annotations

import logging
import os
import sys

RESET = "\033[0m"
GRAY = "\033[90m"

# ANSI color per level; unknown levels are left uncolored
LEVEL_COLORS = {
  logging.DEBUG: "\033[36m",     # Cyan
  logging.INFO: "\033[32m",      # Green
  logging.WARNING: "\033[33m",   # Yellow
  logging.ERROR: "\033[31m",     # Red
  logging.CRITICAL: "\033[35m",  # Magenta
}

LOG_FORMAT = "[%(asctime)s.%(msecs)03d] [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


class ColoredFormatter(logging.Formatter):
  """Colors the level name by severity and the timestamp prefix in gray."""

  def __init__(self, fmt: str = LOG_FORMAT, datefmt: str = DATE_FORMAT, use_colors: bool = True):
    super().__init__(fmt=fmt, datefmt=datefmt)
    self.use_colors = use_colors

  def format(self, record: logging.LogRecord) -> str:
    color = LEVEL_COLORS.get(record.levelno)
    if not self.use_colors or color is None:
      return super().format(record)

    levelname = record.levelname
    record.levelname = f"{color}{levelname}{RESET}"
    try:
      formatted = super().format(record)
    finally:
      record.levelname = levelname

    stamp = f"[{self.formatTime(record, self.datefmt)}.{int(record.msecs):03d}]"
    return formatted.replace(stamp, f"{GRAY}{stamp}{RESET}", 1)


def _colors_wanted(use_colors: bool) -> bool:
  # https://no-color.org
  if not use_colors or os.environ.get("NO_COLOR"):
    return False
  return sys.stdout.isatty()


def setup_logging(level: int | None = None, use_colors: bool = True) -> None:
  """
  Install the monitor's stdout log handler.

  Args:
    level: Logging level; defaults to LOG_LEVEL from the environment (INFO)
    use_colors: ANSI colors, dropped when stdout is not a TTY or NO_COLOR is set
  """
  if level is None:
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

  root = logging.getLogger()
  root.setLevel(level)

  # called once per CLI run, but tests invoke main() repeatedly
  if any(isinstance(h, logging.StreamHandler) for h in root.handlers):
    return

  handler = logging.StreamHandler(sys.stdout)
  handler.setFormatter(ColoredFormatter(use_colors=_colors_wanted(use_colors)))
  root.addHandler(handler)

  # requests' connection pool logs every request at DEBUG
  logging.getLogger("urllib3").setLevel(logging.WARNING)

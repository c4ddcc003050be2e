# updown_monitor/config/loader.py
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import yaml
import os

from updown_monitor.config.models import ConfigError

CONFIG_PATH = os.environ.get("UPDOWN_MONITOR_CONFIG", "config.yaml")

STORE_KINDS = ("sqlite", "postgrest")


@dataclass
class StoreConfig:
  kind: str = "sqlite"
  db_path: str = "monitor_data.db"
  rest_url: Optional[str] = None
  api_key_env: str = "UPDOWN_STORE_API_KEY"
  timeout_sec: float = 10.0
  max_rows: int = 1000

  def api_key(self) -> str:
    return os.environ.get(self.api_key_env, "")


@dataclass
class Config:
  store: StoreConfig


def _build_store(raw) -> StoreConfig:
  if raw is None:
    return StoreConfig()
  if not isinstance(raw, dict):
    raise ConfigError("store must be a mapping")
  try:
    store = StoreConfig(**raw)
  except TypeError as e:
    raise ConfigError(f"invalid store section: {e}") from None

  if store.kind not in STORE_KINDS:
    raise ConfigError(f"store.kind must be one of {STORE_KINDS}, got {store.kind!r}")
  if store.kind == "postgrest" and not store.rest_url:
    raise ConfigError("store.rest_url is required for the postgrest store")
  if store.max_rows < 1:
    raise ConfigError("store.max_rows must be at least 1")
  return store


def load_config(path: str | Path = CONFIG_PATH) -> Config:
  path = Path(path)
  if not path.exists():
    # No file: local SQLite with defaults
    return Config(store=StoreConfig())

  with open(path, "r") as f:
    try:
      raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
      raise ConfigError(f"cannot parse {path}: {e}") from None

  if not isinstance(raw, dict):
    raise ConfigError(f"{path} must contain a mapping")

  return Config(
    store=_build_store(raw.get("store")),
  )

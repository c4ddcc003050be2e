"""Dashboard HTTP server: JSON API plus an SSE stream."""
from __future__ import annotations

import json
import logging
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import TYPE_CHECKING, Optional
from urllib.parse import parse_qs, urlsplit

from updown_monitor.config.models import DEFAULT_STREAM_INTERVAL_SEC

if TYPE_CHECKING:
    from updown_monitor.dashboard.data_collector import HealthDataCollector

logger = logging.getLogger(__name__)


def _param(query: dict[str, list[str]], name: str) -> Optional[str]:
    values = query.get(name)
    if not values or not values[0].strip():
        return None
    return values[0].strip()


class _Handler(BaseHTTPRequestHandler):
    """HTTP handler serving the JSON API and SSE stream."""

    collector: Optional[HealthDataCollector] = None
    stream_interval_sec: float

    def do_GET(self):  # noqa: N802
        parts = urlsplit(self.path)
        query = parse_qs(parts.query)
        try:
            if parts.path == "/api/health":
                self._send_json(self.collector.collect_health(
                    time_range=_param(query, "range") or "1h",
                    asset=_param(query, "asset"),
                    market_filter=_param(query, "market"),
                ))
            elif parts.path == "/api/fill-sync":
                self._send_json(self.collector.collect_fill_sync(
                    market_id=_param(query, "market"),
                    asset=_param(query, "asset"),
                ))
            elif parts.path == "/api/pnl/hourly":
                hours = _param(query, "hours") or "24"
                try:
                    hours_int = int(hours)
                except ValueError:
                    raise ValueError(f"hours must be an integer, got {hours!r}") from None
                self._send_json(self.collector.collect_hourly_pnl(
                    hours=hours_int,
                    asset=_param(query, "asset"),
                ))
            elif parts.path == "/api/stream":
                self._serve_sse()
            else:
                self._send_json({"error": "not found"}, status=404)
        except ValueError as e:
            self._send_json({"error": str(e)}, status=400)
        except Exception:
            logger.exception("Request failed: %s", self.path)
            self._send_json({"error": "internal error"}, status=500)

    # suppress per-request logging
    def log_request(self, code="-", size="-"):
        pass

    def _send_json(self, data: dict, status: int = 200) -> None:
        body = json.dumps(data).encode()
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Access-Control-Allow-Origin", "*")
        self.end_headers()
        self.wfile.write(body)

    def _serve_sse(self):
        self.send_response(200)
        self.send_header("Content-Type", "text/event-stream")
        self.send_header("Cache-Control", "no-cache")
        self.send_header("Connection", "keep-alive")
        self.send_header("Access-Control-Allow-Origin", "*")
        self.end_headers()

        while True:
            try:
                data = self.collector.collect_realtime_snapshot()
                payload = f"data: {json.dumps(data)}\n\n"
                self.wfile.write(payload.encode())
                self.wfile.flush()
                time.sleep(self.stream_interval_sec)
            except (BrokenPipeError, ConnectionResetError, OSError):
                break
            except Exception:
                logger.exception("SSE stream aborted")
                break


class DashboardServer:
    """Manages the dashboard HTTP server in a daemon thread."""

    def __init__(
        self,
        collector: "HealthDataCollector",
        host: str = "0.0.0.0",
        port: int = 8080,
        stream_interval_sec: float = DEFAULT_STREAM_INTERVAL_SEC,
    ):
        self.host = host
        self.port = port
        self.collector = collector
        self.stream_interval_sec = stream_interval_sec
        self._server: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def server_port(self) -> int:
        """Bound port (differs from ``port`` when started with port 0)."""
        return self._server.server_address[1] if self._server else self.port

    def start(self) -> None:
        handler = type("DashboardHandler", (_Handler,), {
            "collector": self.collector,
            "stream_interval_sec": self.stream_interval_sec,
        })
        self._server = ThreadingHTTPServer((self.host, self.port), handler)
        self._server.daemon_threads = True
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name="dashboard-http",
            daemon=True,
        )
        self._thread.start()
        logger.info("Dashboard running at http://%s:%d", self.host, self.server_port)

    def stop(self) -> None:
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            logger.info("Dashboard server stopped")

"""A straightforward Prometheus metrics server.

For programs that are not themselves HTTP services: `MetricsServer` runs a
threaded HTTP endpoint on a port you choose and gives you a registry to put
metrics in.

    server = MetricsServer(port=8080)
    server.run()          # serving http://localhost:8080/metrics
    seconds = Counter("seconds_count", "Number of seconds", registry=server.registry)
    while True:
        time.sleep(1)
        seconds.inc()

Behaviour:
  * ``GET /metrics`` renders the registry in the Prometheus text format,
    gzip-compressed when the client accepts it and the body is larger than
    512 bytes.
  * Every other path gets a 301 redirect to ``/metrics``.
  * ``HEAD`` gets the same headers without a body; any other method gets a
    405. Both are instrumented like ``GET``.
  * Each request is instrumented with a `Request` named after
    ``metrics_prefix`` (labels ``method``/``path``, duration label ``code``).
  * Access and error lines go to ``logger`` through `AccessLogAdapter`.
"""
from __future__ import annotations

import gzip
import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import urlsplit

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

from scrapekit.errors import AlreadyRunningError
from scrapekit.metrics.request import Request
from scrapekit.server.access_log import AccessLogAdapter

_log = logging.getLogger(__name__)

METRICS_PATH = "/metrics"
OTHER_PATH = "other"
GZIP_MIN_BYTES = 512
ALLOWED_METHODS = ("GET", "HEAD")


def _write_body(handler: BaseHTTPRequestHandler, body: bytes) -> None:
    if handler.command != "HEAD":
        handler.wfile.write(body)


def _accepts_gzip(header: str | None) -> bool:
    if not header:
        return False
    for part in header.split(","):
        token, _, params = part.strip().partition(";")
        if token.strip().lower() not in ("gzip", "*"):
            continue
        if params.replace(" ", "").lower() in ("q=0", "q=0.0", "q=0.00", "q=0.000"):
            continue
        return True
    return False


class _ThreadingServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], handler: type[BaseHTTPRequestHandler], log: logging.Logger) -> None:
        self.log = log
        super().__init__(address, handler)

    def handle_error(self, request: Any, client_address: Any) -> None:
        self.log.error("Exception while handling request from %s", client_address, exc_info=True)


class MetricsServer:
    def __init__(
        self,
        port: int = 8080,
        host: str = "",
        *,
        logger: logging.Logger | None = None,
        metrics_prefix: str = "scrapekit_server",
        registry: CollectorRegistry | None = None,
    ) -> None:
        self.host = host
        self.metrics_prefix = metrics_prefix
        self.registry = registry if registry is not None else CollectorRegistry()
        self._port = port
        self._logger = logger or _log
        self._access_log = AccessLogAdapter(self._logger, name="scrapekit.server")
        self._request = Request(metrics_prefix, registry=self.registry,
                                labels=["method", "path"], duration_labels=["code"])
        self._op_lock = threading.Lock()
        self._httpd: _ThreadingServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def port(self) -> int:
        """Bound port while running (useful with ``port=0``), else the configured one."""
        httpd = self._httpd
        if httpd is not None:
            return int(httpd.server_address[1])
        return self._port

    @property
    def running(self) -> bool:
        return self._httpd is not None

    def run(self) -> None:
        """Bind and start serving in a daemon thread.

        Returns once the socket is bound, so scrapes can be made immediately.
        Raises `AlreadyRunningError` if called while running; bind failures
        (port in use) propagate as `OSError`.
        """
        with self._op_lock:
            if self._httpd is not None:
                raise AlreadyRunningError(f"metrics server already running on port {self.port}")
            httpd = _ThreadingServer((self.host, self._port), self._handler_class(), self._logger)
            thread = threading.Thread(target=httpd.serve_forever, name="scrapekit-metrics-http", daemon=True)
            thread.start()
            self._httpd, self._thread = httpd, thread
        self._logger.info("Metrics server started on %s:%s", self.host or "0.0.0.0", self.port)

    def shutdown(self) -> None:
        """Stop serving and wait for the server thread. No-op when not running."""
        with self._op_lock:
            httpd, thread = self._httpd, self._thread
            if httpd is None:
                return
            httpd.shutdown()
            httpd.server_close()
            if thread is not None:
                thread.join()
            self._httpd, self._thread = None, None
        self._logger.info("Metrics server stopped")

    def _handler_class(self) -> type[BaseHTTPRequestHandler]:
        owner = self

        class _MetricsHandler(BaseHTTPRequestHandler):
            server_version = "scrapekit"
            sys_version = ""

            def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
                owner._access_log.access(self.address_string(), format, *args)

            def log_error(self, format: str, *args: Any) -> None:  # noqa: A002
                owner._access_log.error(self.address_string(), format, *args)

            def do_GET(self) -> None:  # noqa: N802
                owner._dispatch(self)

            do_HEAD = do_POST = do_PUT = do_DELETE = do_PATCH = do_OPTIONS = do_GET

        return _MetricsHandler

    def _dispatch(self, handler: BaseHTTPRequestHandler) -> None:
        path = urlsplit(handler.path).path
        route = METRICS_PATH if path.rstrip("/") == METRICS_PATH else OTHER_PATH

        if handler.command not in ALLOWED_METHODS:
            respond = self._method_not_allowed
        elif route == METRICS_PATH:
            respond = self._serve_metrics
        else:
            respond = self._redirect

        def _work(labels: dict[str, str]) -> int:
            code = respond(handler)
            labels["code"] = str(code)
            return code

        self._request.measure({"method": handler.command, "path": route}, _work)

    def _serve_metrics(self, handler: BaseHTTPRequestHandler) -> int:
        try:
            body = generate_latest(self.registry)
        except Exception:
            handler.send_error(500, "metrics rendering failed")
            raise
        handler.send_response(200)
        handler.send_header("Content-Type", CONTENT_TYPE_LATEST)
        if len(body) > GZIP_MIN_BYTES and _accepts_gzip(handler.headers.get("Accept-Encoding")):
            body = gzip.compress(body)
            handler.send_header("Content-Encoding", "gzip")
        handler.send_header("Vary", "Accept-Encoding")
        handler.send_header("Content-Length", str(len(body)))
        handler.end_headers()
        _write_body(handler, body)
        return 200

    def _redirect(self, handler: BaseHTTPRequestHandler) -> int:
        body = b"Try /metrics"
        handler.send_response(301)
        handler.send_header("Location", METRICS_PATH)
        handler.send_header("Content-Type", "text/plain")
        handler.send_header("Content-Length", str(len(body)))
        handler.end_headers()
        _write_body(handler, body)
        return 301

    def _method_not_allowed(self, handler: BaseHTTPRequestHandler) -> int:
        body = b"Method Not Allowed"
        handler.send_response(405)
        handler.send_header("Allow", ", ".join(ALLOWED_METHODS))
        handler.send_header("Content-Type", "text/plain")
        handler.send_header("Content-Length", str(len(body)))
        handler.end_headers()
        _write_body(handler, body)
        return 405


__all__ = ["MetricsServer", "AccessLogAdapter", "METRICS_PATH", "GZIP_MIN_BYTES"]

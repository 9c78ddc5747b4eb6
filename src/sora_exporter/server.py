"""
HTTP side of the exporter: registry wiring and the scrape endpoint.

The Sora collector does the real work on each scrape; this module only
routes GET <metrics_path> to prometheus_client's exposition app and
counts the requests it serves.
"""

from __future__ import annotations

import logging
import socket
from datetime import datetime, timezone
from socketserver import ThreadingMixIn
from typing import Callable, Iterable, Tuple
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    GCCollector,
    Info,
    PlatformCollector,
    ProcessCollector,
    make_wsgi_app,
)

from sora_exporter import __build_date__, __commit__, __version__


log = logging.getLogger(__name__)

WSGIApp = Callable[[dict, Callable], Iterable[bytes]]


def build_info() -> dict:
    """Version, commit and build date, with development fallbacks."""
    return {
        "version": __version__ or "devel",
        "commit": __commit__ or "HEAD",
        "date": __build_date__ or datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
    }


def build_registry(collector, with_runtime: bool = True) -> CollectorRegistry:
    """A fresh registry holding the Sora collector plus build and runtime metrics."""
    registry = CollectorRegistry()
    registry.register(collector)

    Info("sora_exporter_build", "Build information of sora_exporter.", registry=registry).info(build_info())

    if with_runtime:
        ProcessCollector(registry=registry)
        PlatformCollector(registry=registry)
        GCCollector(registry=registry)
    return registry


def instrument_handler(registry: CollectorRegistry, app: WSGIApp) -> WSGIApp:
    """Count served scrapes by status code and track in-flight ones."""
    requests_total = Counter(
        "promhttp_metric_handler_requests",
        "Total number of scrapes by HTTP status code.",
        ["code"],
        registry=registry,
    )
    in_flight = Gauge(
        "promhttp_metric_handler_requests_in_flight",
        "Current number of scrapes being served.",
        registry=registry,
    )

    def instrumented(environ, start_response):
        status = {}

        def capture(status_line, headers, exc_info=None):
            status["code"] = status_line.split(" ", 1)[0]
            return start_response(status_line, headers, exc_info)

        with in_flight.track_inprogress():
            body = app(environ, capture)
        requests_total.labels(code=status.get("code", "500")).inc()
        return body

    return instrumented


def make_app(registry: CollectorRegistry, metrics_path: str = "/metrics") -> WSGIApp:
    metrics_app = instrument_handler(registry, make_wsgi_app(registry))

    def app(environ, start_response):
        if environ.get("PATH_INFO", "/") == metrics_path:
            return metrics_app(environ, start_response)
        start_response("404 Not Found", [("Content-Type", "text/plain; charset=utf-8")])
        return [b"404 page not found\n"]

    return app


def parse_listen_addr(addr: str) -> Tuple[str, int]:
    """Split a Go-style listen address: ':9199', 'host:9199' or '[::1]:9199'."""
    host, sep, port = addr.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {addr!r}")
    try:
        port_num = int(port)
    except ValueError:
        raise ValueError(f"invalid port in address {addr!r}") from None
    if not 0 <= port_num <= 65535:
        raise ValueError(f"port out of range in address {addr!r}")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host or "0.0.0.0", port_num


class _SilentHandler(WSGIRequestHandler):
    def log_message(self, format, *args):
        log.debug("%s - %s", self.address_string(), format % args)


class _ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    daemon_threads = True


class MetricsServer:
    """Threaded WSGI server for the scrape endpoint."""

    def __init__(self, listen_addr: str, app: WSGIApp):
        host, port = parse_listen_addr(listen_addr)
        server_class = _ThreadingWSGIServer
        if ":" in host:
            server_class = type("_ThreadingWSGIServerV6", (_ThreadingWSGIServer,),
                                {"address_family": socket.AF_INET6})
        # make_server binds right away; OSError here means the port is unusable
        self._httpd = make_server(host, port, app, server_class=server_class,
                                  handler_class=_SilentHandler)

    @property
    def address(self) -> Tuple[str, int]:
        return self._httpd.server_address[:2]

    def serve_forever(self):
        log.info("Listening on %s:%d", *self.address)
        self._httpd.serve_forever()

    def shutdown(self):
        """Stop serve_forever(). Must be called from another thread."""
        self._httpd.shutdown()

    def close(self):
        self._httpd.server_close()

"""Tests for registry wiring and the scrape endpoint."""

import threading
from wsgiref.util import setup_testing_defaults

import httpx
import pytest
from prometheus_client.parser import text_string_to_metric_families

from sora_exporter.collector.sora_collector import SoraCollector, with_http_client
from sora_exporter.server import (
    MetricsServer,
    build_info,
    build_registry,
    make_app,
    parse_listen_addr,
)


def _collector(payload=None) -> SoraCollector:
    def handler(request):
        if payload is None:
            raise httpx.ConnectError("down", request=request)
        return httpx.Response(200, json=payload)

    return SoraCollector(with_http_client(httpx.Client(transport=httpx.MockTransport(handler))))


def _call(app, path: str):
    environ = {}
    setup_testing_defaults(environ)
    environ["PATH_INFO"] = path
    captured = {}

    def start_response(status, headers, exc_info=None):
        captured["status"] = status
        captured["headers"] = dict(headers)

    body = b"".join(app(environ, start_response))
    return captured["status"], body.decode()


def _families(text: str) -> dict:
    return {f.name: f for f in text_string_to_metric_families(text)}


def test_metrics_path_serves_sora_metrics():
    registry = build_registry(_collector({"total_connection_created": 7}), with_runtime=False)
    status, body = _call(make_app(registry, "/metrics"), "/metrics")

    assert status.startswith("200")
    families = _families(body)
    assert families["sora_exporter_connections_created"].samples[0].value == 7.0
    assert families["sora_exporter_build_info"].samples[0].labels["version"] == build_info()["version"]


def test_other_paths_are_404():
    registry = build_registry(_collector({}), with_runtime=False)
    status, body = _call(make_app(registry, "/metrics"), "/")
    assert status.startswith("404")
    assert "not found" in body


def test_custom_metrics_path():
    registry = build_registry(_collector({}), with_runtime=False)
    app = make_app(registry, "/sora")
    assert _call(app, "/sora")[0].startswith("200")
    assert _call(app, "/metrics")[0].startswith("404")


def test_failed_scrape_still_serves_other_metrics():
    registry = build_registry(_collector(None), with_runtime=False)
    status, body = _call(make_app(registry, "/metrics"), "/metrics")

    assert status.startswith("200")
    assert "sora_exporter_connections_created_total" not in body
    assert "sora_exporter_build_info" in body


def test_handler_counts_scrapes():
    registry = build_registry(_collector({}), with_runtime=False)
    app = make_app(registry, "/metrics")
    _call(app, "/metrics")
    _, body = _call(app, "/metrics")

    requests = _families(body)["promhttp_metric_handler_requests"]
    total = [s for s in requests.samples if s.name.endswith("_total")]
    assert total[0].labels == {"code": "200"}
    assert total[0].value == 1.0
    in_flight = _families(body)["promhttp_metric_handler_requests_in_flight"]
    assert in_flight.samples[0].value == 1.0


def test_runtime_collectors_registered():
    registry = build_registry(_collector({}))
    _, body = _call(make_app(registry), "/metrics")
    assert "python_info" in body


def test_build_info_fallbacks():
    info = build_info()
    assert info["version"]
    assert info["commit"] == "HEAD"
    assert info["date"].endswith("Z")


@pytest.mark.parametrize("addr, expected", [
    (":9199", ("0.0.0.0", 9199)),
    ("127.0.0.1:8080", ("127.0.0.1", 8080)),
    ("localhost:0", ("localhost", 0)),
    ("[::1]:9199", ("::1", 9199)),
])
def test_parse_listen_addr(addr, expected):
    assert parse_listen_addr(addr) == expected


@pytest.mark.parametrize("addr", ["9199", "host:", "host:http", ":70000"])
def test_parse_listen_addr_rejects(addr):
    with pytest.raises(ValueError):
        parse_listen_addr(addr)


def test_metrics_server_end_to_end():
    registry = build_registry(_collector({"average_setup_time_msec": 1500}), with_runtime=False)
    server = MetricsServer("127.0.0.1:0", make_app(registry, "/metrics"))
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        host, port = server.address
        response = httpx.get(f"http://{host}:{port}/metrics")
        missing = httpx.get(f"http://{host}:{port}/nope")
    finally:
        server.shutdown()
        server.close()
        thread.join(timeout=5)

    assert response.status_code == 200
    assert "sora_exporter_average_setup_time_seconds 1.5" in response.text
    assert missing.status_code == 404


def test_metrics_server_bind_failure():
    first = MetricsServer("127.0.0.1:0", make_app(build_registry(_collector({}), with_runtime=False)))
    try:
        port = first.address[1]
        with pytest.raises(OSError):
            MetricsServer(f"127.0.0.1:{port}", make_app(build_registry(_collector({}), with_runtime=False)))
    finally:
        first.close()

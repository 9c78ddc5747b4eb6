"""
Fake Sora stats API for testing without a real Sora.

    python -m sora_exporter.mock.fake_sora_server
    sora-exporter --sora-url http://127.0.0.1:3000
"""

from __future__ import annotations

import json
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

from sora_exporter.collector.sora_collector import GET_STATS_REPORT, SORA_TARGET_HEADER
from sora_exporter.metrics import StatsReport
from sora_exporter.mock.generator import MockSoraServer


class FakeSoraServer(ThreadingHTTPServer):
    """Serves GetStatsReport from its own generator.

    `delay` stalls before the response starts; `chunk_delay` sends the
    body a few bytes at a time with that pause between pieces.
    """

    def __init__(self, address=("127.0.0.1", 0), seed: int = 42,
                 delay: float = 0.0, chunk_delay: float = 0.0, chunk_size: int = 4):
        super().__init__(address, _StatsHandler)
        self.delay = delay
        self.chunk_delay = chunk_delay
        self.chunk_size = chunk_size
        self._generator = MockSoraServer(seed=seed)
        self._lock = threading.Lock()

    @property
    def url(self) -> str:
        host, port = self.server_address[:2]
        return f"http://{host}:{port}/"

    def next_report(self) -> StatsReport:
        with self._lock:
            return self._generator.snapshot()

    def start(self) -> threading.Thread:
        thread = threading.Thread(target=self.serve_forever, daemon=True)
        thread.start()
        return thread

    def stop(self):
        self.shutdown()
        self.server_close()


class _StatsHandler(BaseHTTPRequestHandler):
    server: FakeSoraServer

    def do_POST(self):
        length = int(self.headers.get("Content-Length") or 0)
        if length:
            self.rfile.read(length)

        target = self.headers.get(SORA_TARGET_HEADER)
        if target != GET_STATS_REPORT:
            self._reply(400, {"error": f"unknown target: {target}"})
            return

        if self.server.delay:
            time.sleep(self.server.delay)

        self._reply(200, self.server.next_report().summary())

    def do_GET(self):
        self._reply(405, {"error": "method not allowed"})

    def _reply(self, status: int, payload: dict):
        body = json.dumps(payload).encode()
        try:
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            if not self.server.chunk_delay:
                self.wfile.write(body)
                return
            step = self.server.chunk_size
            for start in range(0, len(body), step):
                self.wfile.write(body[start:start + step])
                self.wfile.flush()
                time.sleep(self.server.chunk_delay)
        except (BrokenPipeError, ConnectionResetError):
            pass  # client gave up (timeout tests)

    def log_message(self, format, *args):
        pass  # Suppress request logging noise


def run_fake_server(host: str = "127.0.0.1", port: int = 3000, seed: int = 42):
    server = FakeSoraServer((host, port), seed=seed)
    print(f"Fake Sora ({GET_STATS_REPORT}) listening on {server.url}")
    print(f"Try: curl -X POST -H '{SORA_TARGET_HEADER}: {GET_STATS_REPORT}' {server.url}\n")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()


if __name__ == "__main__":
    run_fake_server()

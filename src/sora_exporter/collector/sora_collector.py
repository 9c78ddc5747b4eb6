"""
Collector for a live Sora server. Each scrape POSTs a GetStatsReport
query to Sora and maps the JSON report onto the fixed DESCRIPTORS table.

A scrape is all-or-nothing: if building the request, talking to Sora
or decoding the body fails, the failure is logged and no samples are
produced for that cycle. Nothing is cached between scrapes.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Tuple
from urllib.parse import urlsplit

import httpx

from sora_exporter.collector.base import (
    HTTPClient,
    ReportDecodeError,
    RequestBuildError,
    UpstreamError,
)
from sora_exporter.collector.report_decoder import decode_report
from sora_exporter.metrics import DESCRIPTORS, MetricDescriptor, MetricFamily, StatsReport


SORA_TARGET_HEADER = "x-sora-target"
GET_STATS_REPORT = "Sora_20171010.GetStatsReport"

DEFAULT_TIMEOUT = 1.0
DEFAULT_SORA_URL = "http://127.0.0.1:3000/"


@dataclass
class CollectorConfig:
    http_client: Optional[HTTPClient] = None  # None: the collector creates its own
    logger: Optional[logging.Logger] = None
    timeout: float = DEFAULT_TIMEOUT  # seconds
    sora_url: str = DEFAULT_SORA_URL


Option = Callable[[CollectorConfig], None]


def with_http_client(client: HTTPClient) -> Option:
    def apply(cfg: CollectorConfig) -> None:
        cfg.http_client = client
    return apply


def with_logger(logger: logging.Logger) -> Option:
    def apply(cfg: CollectorConfig) -> None:
        cfg.logger = logger
    return apply


def with_timeout(seconds: float) -> Option:
    def apply(cfg: CollectorConfig) -> None:
        cfg.timeout = seconds
    return apply


def with_sora_url(url: str) -> Option:
    def apply(cfg: CollectorConfig) -> None:
        cfg.sora_url = url
    return apply


def defaults() -> List[Option]:
    return [
        with_logger(logging.getLogger("sora_exporter.collector")),
        with_timeout(DEFAULT_TIMEOUT),
        with_sora_url(DEFAULT_SORA_URL),
    ]


def build_config(*options: Option) -> CollectorConfig:
    """Apply options left to right over the defaults. Later options win."""
    cfg = CollectorConfig()
    for opt in [*defaults(), *options]:
        opt(cfg)
    return cfg


class SoraCollector:
    """prometheus_client custom collector for Sora's connection stats."""

    def __init__(self, *options: Option):
        self.config = build_config(*options)
        self._logger = self.config.logger
        self._owns_client = self.config.http_client is None
        self._client: HTTPClient = self.config.http_client or httpx.Client()

    def describe(self) -> Iterator[MetricFamily]:
        """Advertise every metric we can produce. Never talks to Sora."""
        for desc in DESCRIPTORS:
            yield desc.family()

    def build_request(self) -> httpx.Request:
        url = self.config.sora_url
        try:
            request = httpx.Request(
                "POST",
                url,
                headers={SORA_TARGET_HEADER: GET_STATS_REPORT},
                extensions={"timeout": httpx.Timeout(self.config.timeout).as_dict()},
            )
        except (httpx.InvalidURL, TypeError, ValueError) as e:
            raise RequestBuildError(f"invalid sora url {url!r}: {e}") from e

        if request.url.scheme not in ("http", "https"):
            raise RequestBuildError(f"invalid sora url {url!r}: scheme must be http or https")
        # httpx percent-encodes odd hosts instead of rejecting them
        raw_host = urlsplit(url.strip()).netloc
        host = request.url.host
        if not host or "%" in host or any(c.isspace() for c in raw_host):
            raise RequestBuildError(f"invalid sora url {url!r}: bad host {host!r}")
        return request

    def fetch_report(self) -> StatsReport:
        """Run one round trip to Sora. Raises a CollectionError subclass on failure.

        The whole round trip, body included, must finish before the
        configured timeout runs out; otherwise UpstreamError is raised.
        """
        deadline = time.monotonic() + self.config.timeout
        request = self.build_request()

        try:
            response = self._client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise UpstreamError(f"{type(e).__name__}: {e}") from e

        try:
            body = self._read_body(request, response, deadline)
        finally:
            response.close()

        # A non-2xx status is not a transport error; the body decides.
        if response.is_error:
            self._logger.debug("sora answered with status %d", response.status_code)

        return decode_report(body)

    def _read_body(self, request: httpx.Request, response: httpx.Response, deadline: float) -> bytes:
        timeouts = request.extensions.get("timeout", {})
        chunks = []
        try:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise UpstreamError("deadline exceeded waiting for response headers")
            # shrink the per-read timeout to what is left of the deadline
            timeouts["read"] = remaining
            for chunk in response.iter_bytes():
                chunks.append(chunk)
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise UpstreamError("deadline exceeded reading response body")
                timeouts["read"] = remaining
        except httpx.HTTPError as e:
            raise UpstreamError(f"reading response body: {type(e).__name__}: {e}") from e
        return b"".join(chunks)

    def samples(self, report: StatsReport) -> List[Tuple[MetricDescriptor, float]]:
        return [(desc, desc.sample(report)) for desc in DESCRIPTORS]

    def collect(self) -> Iterator[MetricFamily]:
        started = time.monotonic()
        try:
            report = self.fetch_report()
        except RequestBuildError as e:
            self._logger.error("failed to create request to sora: %s", e)
            return
        except UpstreamError as e:
            self._logger.error("failed to request to sora: %s", e)
            return
        except ReportDecodeError as e:
            self._logger.error("failed to decode response body from sora: %s", e)
            return

        self._logger.debug("scraped sora in %.3fs", time.monotonic() - started)
        for desc, value in self.samples(report):
            yield desc.family(value)

    def name(self) -> str:
        return f"Sora ({self.config.sora_url})"

    def close(self):
        if self._owns_client:
            self._client.close()

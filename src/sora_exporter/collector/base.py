"""
Upstream client interface and collection errors.

The collector only needs to send one request and get one response back.
httpx.Client already has that shape, so anything with a matching send()
works, including test doubles.
"""

from __future__ import annotations

from typing import Protocol

import httpx


class HTTPClient(Protocol):
    """Anything that can send a prepared request to Sora."""

    def send(self, request: httpx.Request, *, stream: bool = False) -> httpx.Response:
        ...


class CollectionError(Exception):
    """A scrape cycle failed and produced no samples."""


class RequestBuildError(CollectionError):
    """The outbound request could not be built (usually a bad URL)."""


class UpstreamError(CollectionError):
    """Transport-level failure talking to Sora, including timeouts."""


class ReportDecodeError(CollectionError):
    """The response body was not a valid stats report."""

"""
Decoder for Sora's GetStatsReport response body.

Known keys are matched exactly, unknown keys are ignored and missing
keys default to zero. Anything that isn't a JSON object of 64-bit
integers is rejected.
"""

from __future__ import annotations

import json
from typing import Any, Union

from sora_exporter.collector.base import ReportDecodeError
from sora_exporter.metrics import StatsReport


INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

_decoder = json.JSONDecoder()


def _to_int64(key: str, value: Any) -> int:
    if value is None:
        return 0
    # bool is an int subclass in Python but not a JSON number
    if isinstance(value, bool) or not isinstance(value, int):
        raise ReportDecodeError(f"field {key!r}: expected integer, got {value!r}")
    if not INT64_MIN <= value <= INT64_MAX:
        raise ReportDecodeError(f"field {key!r}: {value} overflows int64")
    return value


def decode_report(body: Union[bytes, str]) -> StatsReport:
    """Parse one stats report. Only the first JSON value in the body counts."""
    if isinstance(body, bytes):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ReportDecodeError(f"body is not valid UTF-8: {e}") from e

    try:
        data, _ = _decoder.raw_decode(body.lstrip())
    except json.JSONDecodeError as e:
        raise ReportDecodeError(f"invalid JSON: {e}") from e

    if data is None:
        return StatsReport()
    if not isinstance(data, dict):
        raise ReportDecodeError(f"expected a JSON object, got {type(data).__name__}")

    values = {
        name: _to_int64(name, data[name])
        for name in StatsReport.field_names()
        if name in data
    }
    return StatsReport(**values)

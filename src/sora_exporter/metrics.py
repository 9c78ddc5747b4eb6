"""
Core metric definitions for the Sora exporter.

StatsReport mirrors the JSON body Sora returns for GetStatsReport.
DESCRIPTORS is the fixed table of metrics we expose for it: every
scrape either emits one sample per descriptor or none at all.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Optional, Tuple, Union

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily


NAMESPACE = "sora"
SUBSYSTEM = "exporter"


class MetricKind(Enum):
    COUNTER = "counter"
    GAUGE = "gauge"


@dataclass
class StatsReport:
    """A single point-in-time reading from Sora's stats API."""

    # Connection lifecycle
    total_connection_created: int = 0
    total_connection_updated: int = 0
    total_connection_destroyed: int = 0
    total_successful_connections: int = 0
    total_ongoing_connections: int = 0
    total_failed_connections: int = 0

    # Duration (seconds)
    total_duration_sec: int = 0

    # TURN
    total_turn_udp_connections: int = 0
    total_turn_tcp_connections: int = 0

    # Averages
    average_duration_sec: int = 0
    average_setup_time_msec: int = 0

    @classmethod
    def field_names(cls) -> Tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    def summary(self) -> dict:
        """Return a plain dict for display."""
        return {name: getattr(self, name) for name in self.field_names()}


MetricFamily = Union[CounterMetricFamily, GaugeMetricFamily]


def build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    """Join the non-empty parts with underscores, like Prometheus' BuildFQName."""
    if not name:
        return ""
    return "_".join(part for part in (namespace, subsystem, name) if part)


@dataclass(frozen=True)
class MetricDescriptor:
    name: str
    help_text: str
    kind: MetricKind
    source_field: str
    scale: int = 1  # divisor applied to the raw report value

    def sample(self, report: StatsReport) -> float:
        raw = getattr(report, self.source_field)
        if self.scale == 1:
            return float(raw)
        return raw / self.scale

    def family(self, value: Optional[float] = None) -> MetricFamily:
        """Build the prometheus_client family; without a value it carries no samples."""
        if self.kind is MetricKind.COUNTER:
            return CounterMetricFamily(self.name, self.help_text, value=value)
        return GaugeMetricFamily(self.name, self.help_text, value=value)


def _desc(name: str, help_text: str, kind: MetricKind, source_field: str, scale: int = 1) -> MetricDescriptor:
    return MetricDescriptor(
        name=build_fq_name(NAMESPACE, SUBSYSTEM, name),
        help_text=help_text,
        kind=kind,
        source_field=source_field,
        scale=scale,
    )


COUNTER = MetricKind.COUNTER
GAUGE = MetricKind.GAUGE

DESCRIPTORS: Tuple[MetricDescriptor, ...] = (
    _desc("connections_created_total", "The total number of connections created.",
          COUNTER, "total_connection_created"),
    _desc("connections_updated_total", "The total number of connections updated.",
          COUNTER, "total_connection_updated"),
    _desc("connections_destroyed_total", "The total number of connections destroyed.",
          COUNTER, "total_connection_destroyed"),
    _desc("successfull_connections_total", "The total number of successful connections.",
          COUNTER, "total_successful_connections"),
    _desc("ongoing_connections_total", "The total number of ongoing connections.",
          COUNTER, "total_ongoing_connections"),
    _desc("failed_connections_total", "The total number of failed connections.",
          COUNTER, "total_failed_connections"),
    _desc("duration_seconds_total", "The total duration of connections.",
          COUNTER, "total_duration_sec"),
    _desc("turn_udp_connections_total", "The total number of connections with TURN-UDP.",
          COUNTER, "total_turn_udp_connections"),
    _desc("turn_tcp_connections_total", "The total number of connections with TURN-TCP.",
          COUNTER, "total_turn_tcp_connections"),
    _desc("average_duration_seconds", "The average connection duration in seconds.",
          GAUGE, "average_duration_sec"),
    # Sora reports setup time in milliseconds
    _desc("average_setup_time_seconds", "The average setup time in seconds.",
          GAUGE, "average_setup_time_msec", scale=1000),
)

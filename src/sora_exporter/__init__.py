"""Sora exporter: exposes Sora connection stats as Prometheus metrics."""

__version__ = "0.1.0"

# Filled in by release builds; left empty for development checkouts.
__commit__ = ""
__build_date__ = ""

"""
Sora exporter entry point.

Usage:
    sora-exporter                                   Serve /metrics on :9199
    sora-exporter --sora-url http://sora:3000       Point at another Sora
    sora-exporter check                             One-shot scrape, printed as a table
    sora-exporter --version                         Print build info as JSON
"""

from __future__ import annotations

import json
import logging
import re
import signal
import threading

import click

from sora_exporter.collector.base import CollectionError
from sora_exporter.collector.sora_collector import (
    SoraCollector,
    with_logger,
    with_sora_url,
    with_timeout,
)
from sora_exporter.metrics import MetricKind
from sora_exporter.server import MetricsServer, build_info, build_registry, make_app


log = logging.getLogger("sora_exporter")

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


class Duration(click.ParamType):
    """Go-style durations ('500ms', '5s', '1m30s') or plain seconds."""

    name = "duration"

    def convert(self, value, param, ctx):
        if isinstance(value, (int, float)):
            seconds = float(value)
        else:
            text = str(value).strip()
            try:
                seconds = float(text)
            except ValueError:
                if not text or _DURATION_RE.sub("", text):
                    self.fail(f"{value!r} is not a valid duration", param, ctx)
                seconds = sum(float(n) * _DURATION_UNITS[u] for n, u in _DURATION_RE.findall(text))
        if seconds <= 0:
            self.fail(f"duration must be positive, got {value!r}", param, ctx)
        return seconds


def _print_version(ctx, param, value):
    if not value or ctx.resilient_parsing:
        return
    click.echo(json.dumps(build_info()))
    ctx.exit(0)


def _make_collector(ctx) -> SoraCollector:
    return SoraCollector(
        with_logger(logging.getLogger("sora_exporter.collector")),
        with_timeout(ctx.obj["timeout"]),
        with_sora_url(ctx.obj["sora_url"]),
    )


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, expose_value=False, is_eager=True,
              callback=_print_version, help="Print version.")
@click.option("--listen-addr", default=":9199", help="Address to listen for telemetry.")
@click.option("--metrics-path", default="/metrics", help="Path under which to expose metrics.")
@click.option("--timeout", type=Duration(), default="5s", help="Timeout for scraping to sora.")
@click.option("--sora-url", default="http://127.0.0.1:3000", help="URL for sora stats endpoint.")
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging")
@click.pass_context
def cli(ctx, listen_addr: str, metrics_path: str, timeout: float, sora_url: str, verbose: bool):
    """Sora exporter - Prometheus metrics for Sora connection stats."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    ctx.ensure_object(dict)
    ctx.obj["timeout"] = timeout
    ctx.obj["sora_url"] = sora_url

    if ctx.invoked_subcommand is None:
        run_server(_make_collector(ctx), listen_addr, metrics_path)


def run_server(collector: SoraCollector, listen_addr: str, metrics_path: str):
    registry = build_registry(collector)
    try:
        server = MetricsServer(listen_addr, make_app(registry, metrics_path))
    except (OSError, ValueError) as e:
        log.error("failed to listen: %s", e)
        collector.close()
        raise SystemExit(1)

    def _on_signal(signum, frame):
        log.info("Received %s, shutting down", signal.Signals(signum).name)
        # shutdown() blocks until serve_forever() returns, so not from this thread
        threading.Thread(target=server.shutdown, daemon=True).start()

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)

    log.info("Scraping %s, metrics at %s", collector.name(), metrics_path)
    try:
        server.serve_forever()
    finally:
        server.close()
        collector.close()


@cli.command()
@click.pass_context
def check(ctx):
    """Scrape Sora once and print the samples."""
    from rich.console import Console
    from rich.table import Table

    console = Console()
    collector = _make_collector(ctx)

    try:
        report = collector.fetch_report()
    except CollectionError as e:
        console.print(f"[bold red]Scrape failed:[/bold red] {e}")
        raise SystemExit(1)
    finally:
        collector.close()

    table = Table(title=collector.name(), show_header=True, header_style="bold")
    table.add_column("Metric")
    table.add_column("Type", width=8)
    table.add_column("Value", justify="right")

    for desc, value in collector.samples(report):
        color = "cyan" if desc.kind is MetricKind.COUNTER else "magenta"
        table.add_row(desc.name, f"[{color}]{desc.kind.value}[/{color}]", f"{value:g}")
    console.print(table)


if __name__ == "__main__":
    cli()

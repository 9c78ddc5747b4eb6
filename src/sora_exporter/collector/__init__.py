from sora_exporter.collector.base import (
    CollectionError,
    HTTPClient,
    ReportDecodeError,
    RequestBuildError,
    UpstreamError,
)
from sora_exporter.collector.report_decoder import decode_report
from sora_exporter.collector.sora_collector import (
    CollectorConfig,
    SoraCollector,
    with_http_client,
    with_logger,
    with_sora_url,
    with_timeout,
)

__all__ = [
    "CollectionError",
    "CollectorConfig",
    "HTTPClient",
    "ReportDecodeError",
    "RequestBuildError",
    "SoraCollector",
    "UpstreamError",
    "decode_report",
    "with_http_client",
    "with_logger",
    "with_sora_url",
    "with_timeout",
]

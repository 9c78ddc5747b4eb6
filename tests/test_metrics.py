"""Tests for the descriptor table and StatsReport."""

from sora_exporter.metrics import (
    DESCRIPTORS,
    MetricKind,
    StatsReport,
    build_fq_name,
)


def test_eleven_unique_descriptors():
    assert len(DESCRIPTORS) == 11
    assert len({d.name for d in DESCRIPTORS}) == 11


def test_every_report_field_is_exposed_once():
    assert sorted(d.source_field for d in DESCRIPTORS) == sorted(StatsReport.field_names())


def test_names_use_sora_exporter_prefix():
    names = [d.name for d in DESCRIPTORS]
    assert names[0] == "sora_exporter_connections_created_total"
    assert "sora_exporter_successfull_connections_total" in names
    assert names[-1] == "sora_exporter_average_setup_time_seconds"
    assert all(n.startswith("sora_exporter_") for n in names)


def test_kinds():
    gauges = [d.name for d in DESCRIPTORS if d.kind is MetricKind.GAUGE]
    assert gauges == [
        "sora_exporter_average_duration_seconds",
        "sora_exporter_average_setup_time_seconds",
    ]
    assert sum(1 for d in DESCRIPTORS if d.kind is MetricKind.COUNTER) == 9


def test_build_fq_name_skips_empty_parts():
    assert build_fq_name("sora", "exporter", "up") == "sora_exporter_up"
    assert build_fq_name("", "exporter", "up") == "exporter_up"
    assert build_fq_name("sora", "", "up") == "sora_up"
    assert build_fq_name("sora", "exporter", "") == ""


def test_setup_time_is_converted_to_seconds():
    desc = DESCRIPTORS[-1]
    assert desc.sample(StatsReport(average_setup_time_msec=2500)) == 2.5
    assert desc.sample(StatsReport(average_setup_time_msec=1)) == 0.001


def test_counters_pass_through_exactly():
    big = 2 ** 53
    report = StatsReport(total_connection_created=big)
    assert DESCRIPTORS[0].sample(report) == float(big)
    assert isinstance(DESCRIPTORS[0].sample(report), float)


def test_family_without_value_has_no_samples():
    for desc in DESCRIPTORS:
        family = desc.family()
        assert family.samples == []
        assert family.type == desc.kind.value
        assert family.documentation == desc.help_text


def test_counter_family_sample_keeps_total_suffix():
    family = DESCRIPTORS[0].family(3.0)
    assert family.samples[0].name == "sora_exporter_connections_created_total"
    assert family.samples[0].value == 3.0


def test_summary_has_wire_keys():
    summary = StatsReport(total_failed_connections=4).summary()
    assert summary["total_failed_connections"] == 4
    assert set(summary) == set(StatsReport.field_names())

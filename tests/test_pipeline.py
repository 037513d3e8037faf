"""
End-to-end aggregation test over *fixtures/k6-output.json*.

The fixture holds five requests (three ``200``, one ``401``, one ``500``),
two VU samples, one garbage line and one record of an unknown type.
"""

import json
from pathlib import Path

import pytest

from k6report.errors import ConfigError
from k6report.model import UnitCategory
from k6report.parser import read_log
from k6report.pipeline import analyse, analyse_file
from k6report.policy import SuccessPolicy
from k6report.settings import ReportSettings

FIXTURE = Path(__file__).parent / "fixtures" / "k6-output.json"
T0 = 1705312800  # 2024-01-15T10:00:00Z


@pytest.fixture(scope="module")
def snapshot():
    return analyse_file(FIXTURE)


def test_metrics_in_first_seen_order(snapshot):
    assert list(snapshot.metrics) == ["vus", "http_reqs", "http_req_duration", "data_received"]
    assert snapshot.metrics["data_received"].definition.unit is UnitCategory.DATA


def test_latency_stats_only_successful(snapshot):
    stats = snapshot.metrics["http_req_duration"].stats
    assert stats.count == 3
    assert (stats.min, stats.med, stats.max) == (80, 120, 250)
    assert stats.avg == 150
    assert stats.p90 == stats.p95 == stats.p99 == 250


def test_unfiltered_metric_stats(snapshot):
    assert snapshot.metrics["http_reqs"].stats.count == 5
    data = snapshot.metrics["data_received"].stats
    assert data.count == 2
    assert data.total == 3072


def test_summary(snapshot):
    s = snapshot.summary
    assert s.total_requests == 5
    assert s.successful_requests == 3
    assert s.failed_requests == 2
    assert s.success_rate == pytest.approx(60.0)
    assert s.avg_response_time == 150
    assert s.duration_ms == pytest.approx(2300, abs=1e-3)
    assert s.data_transferred == 1024


def test_total_requests_match_status_histogram(snapshot):
    assert snapshot.summary.total_requests == sum(snapshot.timeseries.status_codes.values())
    assert snapshot.timeseries.status_codes == {"200": 3, "401": 1, "500": 1}


def test_timeseries(snapshot):
    ts = snapshot.timeseries
    assert ts.requests_per_second == [(T0, 2), (T0 + 1, 2), (T0 + 2, 1)]
    assert [v for _, v in ts.response_times] == [120, 80, 250]
    assert ts.latency_buckets == {0: 1, 100: 1, 200: 1}
    assert [v for _, v in ts.vus] == [1, 2]
    assert [v for _, v in ts.data_transfer] == [1024]


def test_garbage_line_recorded(snapshot):
    assert [f.line_number for f in snapshot.parse_failures] == [11]


def test_success_statuses_setting_changes_totals():
    settings = ReportSettings(success_statuses=["200", "401"])
    snap = analyse(read_log(FIXTURE), settings)
    assert snap.summary.successful_requests == 4
    assert snap.metrics["http_req_duration"].stats.count == 4


def test_injected_policy_overrides_settings():
    everything = SuccessPolicy(is_success=lambda tags: True)
    snap = analyse(read_log(FIXTURE), policy=everything)
    assert snap.metrics["http_req_duration"].stats.count == 5
    assert snap.summary.success_rate == pytest.approx(100.0)
    assert snap.status_success == {"200": True, "401": True, "500": True}


def test_thresholds_from_settings():
    settings = ReportSettings(
        thresholds={"http_req_duration": ["p(95)<500", "avg<100"], "iterations": ["count>0"]}
    )
    snap = analyse(read_log(FIXTURE), settings)
    assert [(r.metric, r.passed) for r in snap.thresholds] == [
        ("http_req_duration", True),
        ("http_req_duration", False),
        ("iterations", False),
    ]


def test_empty_log_is_not_an_error():
    snap = analyse([])
    assert snap.metrics == {}
    assert snap.is_empty
    assert snap.summary.total_requests is None
    assert snap.summary.duration_ms == 0


def test_definitions_without_points():
    lines = [
        '{"type":"Metric","data":{"name":"http_reqs","type":"counter","contains":"default"}}',
        '{"type":"Metric","data":{"name":"http_req_duration","type":"trend","contains":"time"}}',
    ]
    snap = analyse(lines)
    assert all(m.stats is None for m in snap.metrics.values())
    assert snap.summary.total_requests is None
    assert snap.summary.avg_response_time is None


def test_status_success_in_chart_order(snapshot):
    assert list(snapshot.status_success.items()) == [("200", True), ("401", False), ("500", False)]


def _duration(value, **tags):
    tags.setdefault("status", "200")
    return json.dumps(
        {
            "type": "Point",
            "metric": "http_req_duration",
            "data": {"time": "2024-01-15T10:00:00Z", "value": value, "tags": tags},
        }
    )


def test_non_finite_value_skipped_others_survive():
    lines = [_duration(10), _duration(20), _duration(float("inf")), _duration(float("nan")), _duration(30)]
    snap = analyse(lines)
    assert [f.line_number for f in snap.parse_failures] == [3, 4]
    stats = snap.metrics["http_req_duration"].stats
    assert (stats.count, stats.min, stats.max) == (3, 10, 30)
    assert snap.timeseries.latency_buckets == {0: 3}


def test_submetric_threshold():
    lines = [
        _duration(40, staticAsset="yes"),
        _duration(60, staticAsset="yes"),
        _duration(900, staticAsset="no"),
        _duration(80, staticAsset="yes", status="500"),
    ]
    settings = ReportSettings(
        thresholds={
            "http_req_duration{staticAsset:yes}": ["p(95)<100", "count==2"],
            "http_req_duration": ["p(95)<100"],
        }
    )
    snap = analyse(lines, settings)
    assert [(r.metric, r.actual, r.passed) for r in snap.thresholds] == [
        ("http_req_duration{staticAsset:yes}", 60, True),
        ("http_req_duration{staticAsset:yes}", 2, True),
        ("http_req_duration", 900, False),
    ]
    assert snap.thresholds[0].unit is UnitCategory.TIME
    assert "http_req_duration{staticAsset:yes}" not in snap.metrics


def test_malformed_submetric_key():
    settings = ReportSettings(thresholds={"http_req_duration{staticAsset}": ["p(95)<100"]})
    with pytest.raises(ConfigError):
        analyse([], settings)

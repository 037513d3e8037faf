"""
Unit tests for nearest-rank statistics and the success filter.

Hand-computed nearest-rank table (index = floor(N * p)):

======  ==========  ======  ======  ======  ======
N       values      median  p90     p95     p99
======  ==========  ======  ======  ======  ======
1       [42]        42      42      42      42
7       1..7        4       7       7       7
10      10..100     55      100     100     100
20      1..20       10.5    19      20      20
21      1..21       11      19      20      21
======  ==========  ======  ======  ======  ======
"""

import math
import random
from datetime import datetime, timezone

import pytest

from k6report.aggregator import SampleAggregator, compute_statistics, median, percentile
from k6report.model import MetricDefinition, MetricKind, Sample, UnitCategory
from k6report.policy import SuccessPolicy, status_policy

T0 = datetime(2024, 1, 15, 10, tzinfo=timezone.utc)


def _sample(metric, value, **tags):
    return Sample(metric=metric, value=value, time=T0, tags=tags)


@pytest.mark.parametrize(
    "values, med, p90, p95, p99",
    [
        ([42], 42, 42, 42, 42),
        ([5, 1, 7, 3, 2, 6, 4], 4, 7, 7, 7),
        (list(range(10, 101, 10)), 55, 100, 100, 100),
        (list(range(1, 21)), 10.5, 19, 20, 20),
        (list(range(1, 22)), 11, 19, 20, 21),
    ],
)
def test_nearest_rank_table(values, med, p90, p95, p99):
    stats = compute_statistics(values)
    assert stats.count == len(values)
    assert (stats.med, stats.p90, stats.p95, stats.p99) == (med, p90, p95, p99)


def test_percentile_ignores_float_noise():
    """0.95 * 60 is 56.99999999999999 in binary floating point."""
    values = list(range(60))
    assert percentile(values, 0.95) == 57


def test_percentile_and_median_reject_empty():
    with pytest.raises(ValueError):
        percentile([], 0.5)
    with pytest.raises(ValueError):
        median([])


def test_statistics_basic_fields():
    stats = compute_statistics([3.0, 1.0, 2.0, 6.0])
    assert stats.min == 1.0
    assert stats.max == 6.0
    assert stats.avg == 3.0
    assert stats.med == 2.5
    assert stats.total == 12.0


def test_empty_sample_set_has_no_statistics():
    assert compute_statistics([]) is None


def test_ordering_invariant_on_random_data():
    rng = random.Random(1234)
    for size in range(1, 60):
        stats = compute_statistics([rng.uniform(0, 1000) for _ in range(size)])
        assert stats.min <= stats.med <= stats.p90 <= stats.p95 <= stats.p99 <= stats.max
        assert not math.isnan(stats.avg)


def test_latency_only_counts_successful_samples():
    agg = SampleAggregator(SuccessPolicy())
    agg.add(_sample("http_req_duration", 100, status="200"))
    agg.add(_sample("http_req_duration", 9000, status="500"))
    agg.add(_sample("http_req_duration", 7000))  # no outcome tag
    assert agg.values("http_req_duration") == [100]
    assert agg.rejected == 2


def test_unfiltered_metrics_ignore_status():
    agg = SampleAggregator(SuccessPolicy())
    agg.add(_sample("http_reqs", 1, status="500"))
    agg.add(_sample("health_check", 12))
    assert agg.values("http_reqs") == [1]
    assert agg.values("health_check") == [12]


def test_custom_success_policy():
    """Treat any 2xx/3xx as success and also filter waiting time."""
    policy = SuccessPolicy(
        is_success=lambda tags: tags.get("status", "").startswith(("2", "3")),
        filtered_metrics=frozenset({"http_req_duration", "http_req_waiting"}),
    )
    agg = SampleAggregator(policy)
    agg.add(_sample("http_req_duration", 10, status="204"))
    agg.add(_sample("http_req_duration", 20, status="302"))
    agg.add(_sample("http_req_waiting", 30, status="404"))
    assert agg.values("http_req_duration") == [10, 20]
    assert agg.values("http_req_waiting") == []


def test_status_policy_factory():
    policy = status_policy(["200", "201"], tag="code", metrics=["latency"])
    assert policy.admits("latency", {"code": "201"})
    assert not policy.admits("latency", {"status": "200"})
    assert policy.admits("other", {})


def test_first_definition_wins():
    agg = SampleAggregator()
    agg.define(MetricDefinition(name="x", kind=MetricKind.TREND, unit=UnitCategory.TIME))
    agg.define(MetricDefinition(name="x", kind=MetricKind.COUNTER, unit=UnitCategory.COUNT))
    assert agg.summaries()["x"].definition.kind is MetricKind.TREND


def test_defined_metric_without_points_has_no_data():
    agg = SampleAggregator()
    agg.define(MetricDefinition(name="iterations", kind=MetricKind.COUNTER))
    summaries = agg.summaries()
    assert summaries["iterations"].stats is None


def test_undeclared_metric_gets_implicit_definition():
    agg = SampleAggregator(units={"data_sent": UnitCategory.DATA})
    agg.add(_sample("data_sent", 512))
    definition = agg.summaries()["data_sent"].definition
    assert definition.kind is None
    assert definition.unit is UnitCategory.DATA


def test_summaries_keep_first_seen_order():
    agg = SampleAggregator()
    for name in ("vus", "http_reqs", "checks"):
        agg.add(_sample(name, 1))
    assert list(agg.summaries()) == ["vus", "http_reqs", "checks"]


def test_tracked_submetric_keeps_matching_admitted_values():
    agg = SampleAggregator(SuccessPolicy())
    agg.define(MetricDefinition(name="http_req_duration", kind=MetricKind.TREND, unit=UnitCategory.TIME))
    agg.track("http_req_duration{staticAsset:yes}", "http_req_duration", {"staticAsset": "yes"})
    agg.add(_sample("http_req_duration", 40, status="200", staticAsset="yes"))
    agg.add(_sample("http_req_duration", 900, status="200", staticAsset="no"))
    agg.add(_sample("http_req_duration", 70, status="500", staticAsset="yes"))
    agg.add(_sample("http_reqs", 1, status="200", staticAsset="yes"))

    [(key, summary)] = agg.submetric_summaries().items()
    assert key == "http_req_duration{staticAsset:yes}"
    assert summary.stats.count == 1
    assert summary.stats.max == 40
    assert summary.definition.unit is UnitCategory.TIME
    assert key not in agg.summaries()


def test_tracked_submetric_without_samples_has_no_data():
    agg = SampleAggregator()
    agg.track("vus{scenario:smoke}", "vus", {"scenario": "smoke"})
    assert agg.submetric_summaries()["vus{scenario:smoke}"].stats is None

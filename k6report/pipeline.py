"""
End-to-end report run: log lines → snapshot → HTML file.

One pass over the log feeds a :class:`SampleAggregator` and a
:class:`TimeseriesCollector`; neither sees the other's state. The resulting
:class:`ReportSnapshot` is the only thing handed to the renderer.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from k6report.aggregator import SampleAggregator
from k6report.charts import status_sort_key
from k6report.model import (
    MetricDefinition,
    ParseFailure,
    ReportSnapshot,
    Summary,
    TimeseriesSnapshot,
)
from k6report.parser import iter_records, read_log
from k6report.policy import SuccessPolicy
from k6report.renderer import render_report, write_report
from k6report.settings import ReportSettings
from k6report.thresholds import evaluate_thresholds, parse_metric_key
from k6report.timeseries import TimeseriesCollector

logger = logging.getLogger(__name__)


def classify_statuses(
    status_codes: Mapping[str, int], policy: SuccessPolicy, tag: str
) -> Dict[str, bool]:
    """Ask *policy* once per observed status code, in chart order."""
    return {
        code: policy.is_success({tag: code})
        for code in sorted(status_codes, key=status_sort_key)
    }


def summarize(
    aggregator: SampleAggregator,
    timeseries: TimeseriesSnapshot,
    settings: ReportSettings,
    status_success: Mapping[str, bool],
) -> Summary:
    """Headline numbers; request lines stay ``None`` when the request metric is absent."""
    duration = 0.0
    if timeseries.start is not None and timeseries.end is not None:
        duration = (timeseries.end - timeseries.start) * 1000

    summary = Summary(duration_ms=duration)
    if aggregator.statistics(settings.request_metric) is not None:
        total = sum(timeseries.status_codes.values())
        ok = sum(
            count
            for code, count in timeseries.status_codes.items()
            if status_success.get(code, False)
        )
        summary.total_requests = total
        summary.successful_requests = ok
        summary.failed_requests = total - ok
        summary.success_rate = ok / total * 100 if total else None

    latency = aggregator.statistics(settings.latency_metric)
    if latency is not None:
        summary.avg_response_time = latency.avg
    if timeseries.data_transfer:
        summary.data_transferred = math.fsum(v for _, v in timeseries.data_transfer)
    return summary


def analyse(
    lines: Iterable[str],
    settings: Optional[ReportSettings] = None,
    policy: Optional[SuccessPolicy] = None,
) -> ReportSnapshot:
    """Parse *lines* and build the immutable report snapshot.

    *policy* overrides the status-code policy derived from *settings*.
    """
    settings = settings or ReportSettings()
    policy = policy or settings.success_policy()

    aggregator = SampleAggregator(policy, units=settings.units)
    for key in settings.thresholds:
        metric, tags = parse_metric_key(key)
        if tags:
            aggregator.track(key, metric, tags)
    collector = TimeseriesCollector(
        policy,
        request_metric=settings.request_metric,
        latency_metric=settings.latency_metric,
        vus_metric=settings.vus_metric,
        data_metric=settings.data_metric,
        status_tag=settings.status_tag,
        bucket_width=settings.latency_bucket_width,
    )
    failures: List[ParseFailure] = []

    samples = 0
    for record in iter_records(lines, units=settings.units, failures=failures):
        if isinstance(record, MetricDefinition):
            aggregator.define(record)
            continue
        aggregator.add(record)
        collector.add(record)
        samples += 1

    metrics = aggregator.summaries()
    timeseries = collector.snapshot()
    logger.info(
        "Parsed %d samples across %d metrics (%d skipped lines, %d filtered samples)",
        samples,
        len(metrics),
        len(failures),
        aggregator.rejected,
    )
    if failures:
        logger.warning("%d malformed line(s) skipped", len(failures))

    status_success = classify_statuses(timeseries.status_codes, policy, settings.status_tag)
    return ReportSnapshot(
        title=settings.title,
        metrics=metrics,
        timeseries=timeseries,
        summary=summarize(aggregator, timeseries, settings, status_success),
        status_success=status_success,
        parse_failures=failures,
        thresholds=evaluate_thresholds(
            {**metrics, **aggregator.submetric_summaries()}, settings.thresholds
        ),
    )


def analyse_file(path: str | Path, settings: Optional[ReportSettings] = None) -> ReportSnapshot:
    return analyse(read_log(path), settings)


def build_report(
    settings: Optional[ReportSettings] = None,
    generated_at: Optional[datetime] = None,
) -> Path:
    """Read ``settings.input_path``, render, and write ``settings.output_path``."""
    settings = settings or ReportSettings()
    logger.info("Processing k6 output %s", settings.input_path)
    snapshot = analyse_file(settings.input_path, settings)
    document = render_report(snapshot, generated_at)
    return write_report(document, settings.output_path)

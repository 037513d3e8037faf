"""
Time-bucketed series for the report charts.

All structures are filled in a single pass with no lookahead. The
requests-per-second series assumes the log is ordered by time: an earlier
second appearing after a later one simply opens a new bucket.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import Dict, List, Optional, Tuple

from k6report.model import Sample, TimeseriesSnapshot
from k6report.policy import SuccessPolicy


class _SecondCounter:
    """Run-length counter over integer-truncated seconds."""

    def __init__(self) -> None:
        self.buckets: List[Tuple[int, int]] = []
        self._second: Optional[int] = None
        self._count = 0

    def add(self, timestamp: float) -> None:
        second = math.floor(timestamp)
        if second == self._second:
            self._count += 1
            return
        self.flush()
        self._second = second
        self._count = 1

    def flush(self) -> None:
        if self._second is not None and self._count:
            self.buckets.append((self._second, self._count))
        self._second = None
        self._count = 0


def bucket_per_second(timestamps: Iterable[float]) -> List[Tuple[int, int]]:
    """Group time-ordered *timestamps* into ``(second, count)`` buckets."""
    counter = _SecondCounter()
    for ts in timestamps:
        counter.add(ts)
    counter.flush()
    return counter.buckets


class TimeseriesCollector:
    def __init__(
        self,
        policy: Optional[SuccessPolicy] = None,
        *,
        request_metric: str = "http_reqs",
        latency_metric: str = "http_req_duration",
        vus_metric: str = "vus",
        data_metric: str = "data_received",
        status_tag: str = "status",
        bucket_width: int = 100,
    ) -> None:
        self.policy = policy or SuccessPolicy()
        self.request_metric = request_metric
        self.latency_metric = latency_metric
        self.vus_metric = vus_metric
        self.data_metric = data_metric
        self.status_tag = status_tag
        self.bucket_width = bucket_width

        self.vus: List[Tuple[float, float]] = []
        self.response_times: List[Tuple[float, float]] = []
        self.data_transfer: List[Tuple[float, float]] = []
        self.status_codes: Dict[str, int] = {}
        self.latency_buckets: Dict[int, int] = {}
        self._rps = _SecondCounter()
        self.start: Optional[float] = None
        self.end: Optional[float] = None

    def add(self, sample: Sample) -> None:
        ts = sample.timestamp
        if self.start is None or ts < self.start:
            self.start = ts
        if self.end is None or ts > self.end:
            self.end = ts

        metric = sample.metric
        if metric == self.vus_metric:
            self.vus.append((ts, sample.value))
        if metric == self.latency_metric and self.policy.admits(metric, sample.tags):
            self.response_times.append((ts, sample.value))
            bucket = int(math.floor(sample.value / self.bucket_width) * self.bucket_width)
            self.latency_buckets[bucket] = self.latency_buckets.get(bucket, 0) + 1
        if metric == self.request_metric:
            self._rps.add(ts)
            status = sample.tags.get(self.status_tag)
            if status is not None:
                self.status_codes[status] = self.status_codes.get(status, 0) + 1
        if metric == self.data_metric and self.policy.is_success(sample.tags):
            self.data_transfer.append((ts, sample.value))

    def snapshot(self) -> TimeseriesSnapshot:
        """Flush the open per-second bucket and freeze the collected series."""
        self._rps.flush()
        return TimeseriesSnapshot(
            vus=list(self.vus),
            response_times=list(self.response_times),
            requests_per_second=list(self._rps.buckets),
            data_transfer=list(self.data_transfer),
            status_codes=dict(self.status_codes),
            latency_buckets=dict(sorted(self.latency_buckets.items())),
            latency_bucket_width=self.bucket_width,
            start=self.start,
            end=self.end,
        )

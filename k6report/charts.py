"""
Backend-neutral chart data.

:class:`ChartDataProvider` turns a :class:`TimeseriesSnapshot` into plain
x/y series for the five report charts. It knows nothing about HTML or
plotly; :mod:`k6report.renderer` draws what it returns.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import List, Optional, Tuple

from k6report.model import TimeseriesSnapshot

PERCENTILE_MARKS = (90, 95, 99)


@dataclass(frozen=True)
class Series:
    x: List[float] = field(default_factory=list)
    y: List[float] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.x)


@dataclass(frozen=True)
class OverlayChart:
    response_times: Series
    vus: Series


@dataclass(frozen=True)
class PercentileChart:
    curve: Series
    marks: List[Tuple[int, float]]  # (percentile, value)


@dataclass(frozen=True)
class StatusChart:
    codes: List[str]
    counts: List[int]
    labels: List[str]
    success: List[bool]


def status_label(code: str) -> str:
    """``"404"`` → ``"404 Not Found"``; unknown codes stay bare."""
    try:
        phrase = HTTPStatus(int(code)).phrase
    except ValueError:
        return code
    return f"{code} {phrase}"


def _split(points: List[Tuple[float, float]]) -> Series:
    return Series(x=[p[0] for p in points], y=[p[1] for p in points])


def status_sort_key(code: str) -> Tuple[int, str]:
    return (int(code), code) if code.isdigit() else (10**6, code)


class ChartDataProvider:
    def __init__(
        self,
        timeseries: TimeseriesSnapshot,
        status_success: Optional[Mapping[str, bool]] = None,
    ) -> None:
        self.ts = timeseries
        # codes the success policy never saw are drawn as failures
        self.status_success = dict(status_success or {})

    def vu_overlay(self) -> OverlayChart:
        return OverlayChart(
            response_times=_split(self.ts.response_times),
            vus=_split(self.ts.vus),
        )

    def latency_distribution(self) -> Series:
        buckets = sorted(self.ts.latency_buckets.items())
        return Series(x=[b for b, _ in buckets], y=[c for _, c in buckets])

    def latency_percentiles(self) -> PercentileChart:
        ordered = sorted(v for _, v in self.ts.response_times)
        n = len(ordered)
        if n == 0:
            return PercentileChart(curve=Series(), marks=[])
        xs = list(range(1, 101))
        ys = [ordered[min(p * n // 100, n - 1)] for p in xs]
        marks = [(p, ys[p - 1]) for p in PERCENTILE_MARKS]
        return PercentileChart(curve=Series(x=xs, y=ys), marks=marks)

    def requests_per_second(self) -> Series:
        return Series(
            x=[sec for sec, _ in self.ts.requests_per_second],
            y=[count for _, count in self.ts.requests_per_second],
        )

    def status_codes(self) -> StatusChart:
        codes = sorted(self.ts.status_codes, key=status_sort_key)
        return StatusChart(
            codes=codes,
            counts=[self.ts.status_codes[c] for c in codes],
            labels=[status_label(c) for c in codes],
            success=[self.status_success.get(c, False) for c in codes],
        )

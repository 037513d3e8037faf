"""
k6-style pass/fail thresholds evaluated against aggregated statistics.

Expressions look like the ones in a k6 script's ``options.thresholds``::

    {"http_req_duration": ["p(95)<500", "avg<=200"], "http_reqs": ["count>100"]}

A key may name a submetric, ``metric{tag:value,...}``, which only covers
samples carrying every listed tag. A metric without data fails every
threshold attached to it.
"""

from __future__ import annotations

import operator
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from k6report.errors import ConfigError
from k6report.model import MetricSummary, Statistics, ThresholdResult, UnitCategory

_OPS: Dict[str, Callable[[float, float], bool]] = {
    "<=": operator.le,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    ">": operator.gt,
}

_EXPR = re.compile(
    r"^\s*(?P<stat>min|max|avg|med|count|p\((?P<pct>\d+)\))\s*"
    r"(?P<op><=|>=|==|!=|<|>)\s*(?P<limit>-?\d+(?:\.\d+)?)\s*$"
)

_PERCENTILE_FIELDS = {"90": "p90", "95": "p95", "99": "p99"}

_KEY = re.compile(r"^\s*(?P<metric>[^{}\s]+)\s*(?:\{(?P<tags>[^{}]*)\})?\s*$")


@dataclass(frozen=True)
class Threshold:
    expression: str
    field: str
    op: str
    limit: float

    def actual(self, stats: Optional[Statistics]) -> Optional[float]:
        if stats is None:
            return None
        return float(getattr(stats, self.field))

    def check(self, stats: Optional[Statistics]) -> bool:
        value = self.actual(stats)
        if value is None:
            return False
        return _OPS[self.op](value, self.limit)


def parse_threshold(expression: str) -> Threshold:
    """Parse ``p(95)<500``-style *expression*; :class:`ConfigError` if malformed."""
    match = _EXPR.match(expression)
    if match is None:
        raise ConfigError(f"Malformed threshold expression: {expression!r}")
    stat = match["stat"]
    if match["pct"] is not None:
        field = _PERCENTILE_FIELDS.get(match["pct"])
        if field is None:
            raise ConfigError(
                f"Unsupported percentile in {expression!r} (use p(90), p(95) or p(99))"
            )
    else:
        field = stat
    return Threshold(
        expression=expression.strip(),
        field=field,
        op=match["op"],
        limit=float(match["limit"]),
    )


def parse_metric_key(key: str) -> Tuple[str, Dict[str, str]]:
    """Split ``http_req_duration{staticAsset:yes}`` into the metric and its tag filter.

    Plain metric names come back with an empty filter.
    """
    match = _KEY.match(key)
    if match is None:
        raise ConfigError(f"Malformed threshold metric: {key!r}")
    tags: Dict[str, str] = {}
    if match["tags"] is not None:
        for pair in match["tags"].split(","):
            name, sep, value = pair.partition(":")
            if not sep or not name.strip():
                raise ConfigError(f"Malformed tag filter {pair.strip()!r} in {key!r}")
            tags[name.strip()] = value.strip()
    return match["metric"], tags


def parse_cli_threshold(text: str) -> tuple[str, str]:
    """Split ``metric=expression`` as given on the command line."""
    metric, sep, expression = text.partition("=")
    # "count==5" style expressions contain "=" too, so split on the first one only
    if not sep or not metric.strip() or not expression.strip():
        raise ConfigError(f"Threshold must look like METRIC=EXPR, got {text!r}")
    return metric.strip(), expression.strip()


def evaluate_thresholds(
    metrics: Mapping[str, MetricSummary],
    thresholds: Mapping[str, Sequence[str]],
) -> List[ThresholdResult]:
    """Check every expression in *thresholds* against *metrics*, in declaration order.

    Submetric keys are looked up verbatim, so *metrics* must already hold
    their statistics under the same key.
    """
    results: List[ThresholdResult] = []
    for metric, expressions in thresholds.items():
        parse_metric_key(metric)
        summary = metrics.get(metric)
        stats = summary.stats if summary else None
        for expression in expressions:
            threshold = parse_threshold(expression)
            results.append(
                ThresholdResult(
                    metric=metric,
                    expression=threshold.expression,
                    unit=summary.definition.unit if summary else UnitCategory.UNITLESS,
                    actual=threshold.actual(stats),
                    passed=threshold.check(stats),
                )
            )
    return results

"""
Per-metric sample aggregation.

Features
--------
* Keeps every admitted value for the run; statistics are recomputed from
  scratch on each :meth:`SampleAggregator.summaries` call.
* Percentiles use the nearest-rank rule: the value at sorted index
  ``floor(N * p)``, no interpolation.
* Samples of filtered metrics (``http_req_duration`` by default) only count
  when the :class:`~k6report.policy.SuccessPolicy` accepts their tags.
* Tracked submetrics (``metric{tag:value}``) keep the admitted values of
  their parent metric whose tags match the filter.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from typing import Dict, List, Optional

from k6report.model import MetricDefinition, MetricSummary, Sample, Statistics, UnitCategory
from k6report.policy import SuccessPolicy

logger = logging.getLogger(__name__)


# Pure helpers

def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile of an ascending, non-empty sequence (``0 <= p < 1``)."""
    if not sorted_values:
        raise ValueError("percentile of empty sequence")
    if not 0 <= p < 1:
        raise ValueError(f"p must be in [0, 1), got {p}")
    # round() absorbs binary noise such as 0.95 * 60 == 56.99999999999999
    index = math.floor(round(len(sorted_values) * p, 9))
    return sorted_values[min(index, len(sorted_values) - 1)]


def median(sorted_values: Sequence[float]) -> float:
    n = len(sorted_values)
    if n == 0:
        raise ValueError("median of empty sequence")
    mid = n // 2
    if n % 2:
        return sorted_values[mid]
    return (sorted_values[mid - 1] + sorted_values[mid]) / 2


def compute_statistics(values: Sequence[float]) -> Optional[Statistics]:
    """Return :class:`Statistics` for *values*, or ``None`` if there are none."""
    if not values:
        return None
    ordered = sorted(values)
    total = math.fsum(ordered)
    return Statistics(
        count=len(ordered),
        min=ordered[0],
        max=ordered[-1],
        avg=total / len(ordered),
        med=median(ordered),
        p90=percentile(ordered, 0.90),
        p95=percentile(ordered, 0.95),
        p99=percentile(ordered, 0.99),
        total=total,
    )


# Stateful aggregator

class SampleAggregator:
    """Accumulates admitted sample values per metric for one parse pass."""

    def __init__(
        self,
        policy: Optional[SuccessPolicy] = None,
        units: Optional[Dict[str, UnitCategory]] = None,
    ) -> None:
        self.policy = policy or SuccessPolicy()
        self.units = units or {}
        self._definitions: Dict[str, MetricDefinition] = {}
        self._values: Dict[str, List[float]] = {}
        self._submetrics: Dict[str, tuple[str, Dict[str, str]]] = {}
        self._sub_values: Dict[str, List[float]] = {}
        self.rejected = 0

    def track(self, key: str, metric: str, tags: Mapping[str, str]) -> None:
        """Collect values of *metric* whose tags include every pair in *tags* under *key*."""
        self._submetrics[key] = (metric, dict(tags))
        self._sub_values.setdefault(key, [])

    def define(self, definition: MetricDefinition) -> None:
        """Register *definition*; later definitions of the same name are ignored."""
        if definition.name in self._definitions:
            logger.debug("Ignoring repeated definition of %s", definition.name)
            return
        self._definitions[definition.name] = definition
        self._values.setdefault(definition.name, [])

    def add(self, sample: Sample) -> bool:
        """Record *sample*; return **False** if the success filter dropped it."""
        if sample.metric not in self._definitions:
            self.define(
                MetricDefinition(
                    name=sample.metric,
                    unit=self.units.get(sample.metric, UnitCategory.UNITLESS),
                )
            )
        if not self.policy.admits(sample.metric, sample.tags):
            self.rejected += 1
            return False
        self._values[sample.metric].append(sample.value)
        for key, (metric, tags) in self._submetrics.items():
            if metric == sample.metric and all(sample.tags.get(k) == v for k, v in tags.items()):
                self._sub_values[key].append(sample.value)
        return True

    def values(self, metric: str) -> List[float]:
        return list(self._values.get(metric, ()))

    def statistics(self, metric: str) -> Optional[Statistics]:
        return compute_statistics(self._values.get(metric, ()))

    def summaries(self) -> Dict[str, MetricSummary]:
        """Fresh statistics for every metric seen, in first-seen order."""
        return {
            name: MetricSummary(definition=definition, stats=self.statistics(name))
            for name, definition in self._definitions.items()
        }

    def submetric_summaries(self) -> Dict[str, MetricSummary]:
        """Statistics for every tracked submetric, keyed as passed to :meth:`track`."""
        result = {}
        for key, (metric, _) in self._submetrics.items():
            parent = self._definitions.get(metric)
            unit = parent.unit if parent else self.units.get(metric, UnitCategory.UNITLESS)
            definition = MetricDefinition(
                name=key,
                kind=parent.kind if parent else None,
                contains=parent.contains if parent else "default",
                unit=unit,
            )
            result[key] = MetricSummary(
                definition=definition,
                stats=compute_statistics(self._sub_values[key]),
            )
        return result

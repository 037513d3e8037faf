"""
Success policy: decides which samples count as a successful outcome.

The aggregator and timeseries collector never compare status codes
themselves. They ask a :class:`SuccessPolicy`, which wraps an arbitrary
predicate over a sample's tags plus the set of metrics the filter applies to.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field

TagPredicate = Callable[[Mapping[str, str]], bool]


def status_in(statuses: Iterable[str], *, tag: str = "status") -> TagPredicate:
    """Return a predicate accepting tags whose *tag* value is one of *statuses*."""
    allowed = frozenset(str(s) for s in statuses)

    def _predicate(tags: Mapping[str, str]) -> bool:
        value = tags.get(tag)
        return value is not None and value in allowed

    return _predicate


@dataclass(frozen=True)
class SuccessPolicy:
    is_success: TagPredicate = field(default_factory=lambda: status_in({"200"}))
    filtered_metrics: frozenset[str] = frozenset({"http_req_duration"})

    def applies_to(self, metric: str) -> bool:
        return metric in self.filtered_metrics

    def admits(self, metric: str, tags: Mapping[str, str]) -> bool:
        """Return **True** if a sample of *metric* with *tags* counts toward stats.

        Metrics outside the filtered set are always admitted; filtered
        metrics need a tag set the success predicate accepts.
        """
        if not self.applies_to(metric):
            return True
        return self.is_success(tags)


def status_policy(
    statuses: Iterable[str] = ("200",),
    *,
    tag: str = "status",
    metrics: Iterable[str] = ("http_req_duration",),
) -> SuccessPolicy:
    """Build the usual status-code based policy."""
    return SuccessPolicy(
        is_success=status_in(statuses, tag=tag),
        filtered_metrics=frozenset(metrics),
    )

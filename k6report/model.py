"""
Core data-model classes for the k6 report builder.

Includes:
* **MetricDefinition** and **Sample**, the two record kinds of a k6 JSON log.
* **ParseFailure** for lines that could not be decoded.
* **Statistics**, **TimeseriesSnapshot**, **Summary** and **ReportSnapshot**,
  the immutable hand-off from aggregation to rendering.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

from dateutil import parser as dtparse
from pydantic import BaseModel, ConfigDict, Field, field_validator


# Helper functions

def _parse_iso(value: str) -> datetime:
    """Return an aware UTC datetime for *value* (ISO 8601 only, up to ns precision)."""
    dt = dtparse.isoparse(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# Enums

class MetricKind(str, Enum):
    COUNTER = "counter"
    GAUGE = "gauge"
    RATE = "rate"
    TREND = "trend"


class UnitCategory(str, Enum):
    TIME = "time"
    DATA = "data"
    COUNT = "count"
    UNITLESS = "unitless"


# Log records

class MetricDefinition(BaseModel):
    """One ``{"type": "Metric"}`` record; first definition of a name wins."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: Optional[MetricKind] = None
    contains: str = "default"
    unit: UnitCategory = UnitCategory.UNITLESS


class Sample(BaseModel):
    """One ``{"type": "Point"}`` record."""

    model_config = ConfigDict(frozen=True)

    metric: str
    value: float = Field(allow_inf_nan=False)
    time: datetime
    tags: Dict[str, str] = {}

    @field_validator("time", mode="before")
    @classmethod
    def _coerce_time(cls, v):
        if isinstance(v, str):
            return _parse_iso(v)
        return v

    @field_validator("value", mode="before")
    @classmethod
    def _reject_bool(cls, v):
        # JSON true/false would otherwise validate as 1.0/0.0
        if isinstance(v, bool):
            raise ValueError("value must be a number")
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def _stringify_tags(cls, v):
        if v is None:
            return {}
        if isinstance(v, dict):
            return {str(k): str(val) for k, val in v.items()}
        return v

    @property
    def timestamp(self) -> float:
        """Epoch seconds."""
        return self.time.timestamp()


class ParseFailure(BaseModel):
    line_number: int
    reason: str
    line: str = ""


# Aggregates

class Statistics(BaseModel):
    model_config = ConfigDict(frozen=True)

    count: int
    min: float
    max: float
    avg: float
    med: float
    p90: float
    p95: float
    p99: float
    total: float


class MetricSummary(BaseModel):
    definition: MetricDefinition
    stats: Optional[Statistics] = None  # None ⇒ "no data"


class TimeseriesSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    vus: List[Tuple[float, float]] = []
    response_times: List[Tuple[float, float]] = []
    requests_per_second: List[Tuple[int, int]] = []
    data_transfer: List[Tuple[float, float]] = []
    status_codes: Dict[str, int] = {}
    latency_buckets: Dict[int, int] = {}
    latency_bucket_width: float = 100
    start: Optional[float] = None
    end: Optional[float] = None


class Summary(BaseModel):
    duration_ms: float = 0.0
    total_requests: Optional[int] = None
    successful_requests: Optional[int] = None
    failed_requests: Optional[int] = None
    success_rate: Optional[float] = None  # percent
    avg_response_time: Optional[float] = None
    data_transferred: Optional[float] = None  # bytes, successful requests only


class ThresholdResult(BaseModel):
    metric: str
    expression: str
    unit: UnitCategory = UnitCategory.UNITLESS
    actual: Optional[float] = None
    passed: bool


class ReportSnapshot(BaseModel):
    """Everything the renderer needs; built once per run."""

    title: str = "Load Test Report"
    metrics: Dict[str, MetricSummary] = {}
    timeseries: TimeseriesSnapshot = Field(default_factory=TimeseriesSnapshot)
    summary: Summary = Field(default_factory=Summary)
    status_success: Dict[str, bool] = {}  # status code -> accepted by the success policy
    parse_failures: List[ParseFailure] = []
    thresholds: List[ThresholdResult] = []

    @property
    def is_empty(self) -> bool:
        return not any(m.stats for m in self.metrics.values())

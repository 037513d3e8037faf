"""
Report settings.

Behaviour
~~~~~~~~~
* Defaults reproduce a plain ``k6 run --out json=k6-output.json`` workflow:
  ``http_req_duration`` stats only count ``status == "200"`` samples.
* ``load_settings(path)`` reads a JSON file; unknown keys are rejected so
  typos do not silently fall back to defaults.
* CLI options are applied on top with :meth:`ReportSettings.model_copy`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from k6report.errors import ConfigError
from k6report.model import UnitCategory
from k6report.policy import SuccessPolicy, status_policy

# Built-in k6 metrics and how their values are expressed
DEFAULT_UNITS: Dict[str, UnitCategory] = {
    "http_req_duration": UnitCategory.TIME,
    "http_req_waiting": UnitCategory.TIME,
    "http_req_connecting": UnitCategory.TIME,
    "http_req_tls_handshaking": UnitCategory.TIME,
    "http_req_sending": UnitCategory.TIME,
    "http_req_receiving": UnitCategory.TIME,
    "http_req_blocked": UnitCategory.TIME,
    "iteration_duration": UnitCategory.TIME,
    "http_reqs": UnitCategory.COUNT,
    "iterations": UnitCategory.COUNT,
    "vus": UnitCategory.COUNT,
    "vus_max": UnitCategory.COUNT,
    "checks": UnitCategory.COUNT,
    "data_sent": UnitCategory.DATA,
    "data_received": UnitCategory.DATA,
}


class ReportSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    input_path: Path = Path("k6-output.json")
    output_path: Path = Path("load-test-report.html")
    title: str = "Load Test Report"

    request_metric: str = "http_reqs"
    latency_metric: str = "http_req_duration"
    vus_metric: str = "vus"
    data_metric: str = "data_received"

    status_tag: str = "status"
    success_statuses: List[str] = ["200"]
    filtered_metrics: List[str] = ["http_req_duration"]

    latency_bucket_width: int = 100
    units: Dict[str, UnitCategory] = DEFAULT_UNITS
    thresholds: Dict[str, List[str]] = {}

    @field_validator("success_statuses", mode="before")
    @classmethod
    def _statuses_as_str(cls, v):
        if isinstance(v, (list, tuple)):
            return [str(s) for s in v]
        return v

    @field_validator("latency_bucket_width")
    @classmethod
    def _positive_width(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("latency_bucket_width must be > 0")
        return v

    def success_policy(self) -> SuccessPolicy:
        return status_policy(
            self.success_statuses,
            tag=self.status_tag,
            metrics=self.filtered_metrics,
        )


def load_settings(path: str | Path) -> ReportSettings:
    """Read :class:`ReportSettings` from a JSON file."""
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read settings file {path}: {exc}") from exc
    try:
        settings = ReportSettings.model_validate_json(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings file {path}: {exc}") from exc

    # partial unit tables extend the defaults instead of replacing them
    if "units" in settings.model_fields_set:
        settings = settings.model_copy(update={"units": {**DEFAULT_UNITS, **settings.units}})
    return settings

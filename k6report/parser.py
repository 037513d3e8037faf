"""
Decoder for k6 newline-delimited JSON output (``k6 run --out json=...``).

Every line is one of:

* ``{"type": "Metric", "data": {"name", "type", "contains"}}``
* ``{"type": "Point", "metric": ..., "data": {"time", "value", "tags"}}``

Anything else (other ``type`` values, blank lines) is ignored. Lines that are
not valid JSON or lack required fields become :class:`ParseFailure` values
and are logged; one bad line never stops the run.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from k6report.errors import MissingInputFile
from k6report.model import MetricDefinition, MetricKind, ParseFailure, Sample, UnitCategory

logger = logging.getLogger(__name__)

Record = Union[MetricDefinition, Sample]

_MAX_ECHO = 200  # chars of a bad line kept for the report


def resolve_unit(
    name: str, contains: str, kind: Optional[MetricKind], units: Mapping[str, UnitCategory]
) -> UnitCategory:
    """Unit table first, then the ``contains`` hint k6 declares."""
    if name in units:
        return units[name]
    if contains == "time":
        return UnitCategory.TIME
    if contains == "data":
        return UnitCategory.DATA
    if kind is MetricKind.COUNTER:
        return UnitCategory.COUNT
    return UnitCategory.UNITLESS


def _failure(line_number: int, reason: str, line: str) -> ParseFailure:
    logger.warning("Skipping line %d: %s", line_number, reason)
    return ParseFailure(line_number=line_number, reason=reason, line=line[:_MAX_ECHO])


def _definition(doc: dict, units: Mapping[str, UnitCategory]) -> MetricDefinition:
    data = doc.get("data")
    if not isinstance(data, dict) or not isinstance(data.get("name"), str):
        raise ValueError("Metric record without data.name")
    try:
        kind: Optional[MetricKind] = MetricKind(data.get("type"))
    except ValueError:
        kind = None
    contains = str(data.get("contains") or "default")
    name = data["name"]
    return MetricDefinition(
        name=name,
        kind=kind,
        contains=contains,
        unit=resolve_unit(name, contains, kind, units),
    )


def _sample(doc: dict) -> Sample:
    data = doc.get("data")
    if not isinstance(data, dict):
        raise ValueError("Point record without data object")
    if not isinstance(doc.get("metric"), str):
        raise ValueError("Point record without metric name")
    return Sample(
        metric=doc["metric"],
        value=data.get("value"),
        time=data.get("time"),
        tags=data.get("tags"),
    )


def parse_line(
    line: str,
    line_number: int = 0,
    units: Optional[Mapping[str, UnitCategory]] = None,
) -> Record | ParseFailure | None:
    """Decode one log line.

    Returns a :class:`MetricDefinition`, a :class:`Sample`, a
    :class:`ParseFailure`, or ``None`` for lines that carry no record.
    """
    if not line.strip():
        return None
    try:
        doc = json.loads(line)
    except json.JSONDecodeError as exc:
        return _failure(line_number, f"invalid JSON ({exc.msg})", line)
    if not isinstance(doc, dict):
        return _failure(line_number, "record is not a JSON object", line)

    kind = doc.get("type")
    try:
        if kind == "Metric":
            return _definition(doc, units or {})
        if kind == "Point":
            return _sample(doc)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        return _failure(line_number, f"invalid {kind} record ({fields})", line)
    except (ValueError, OverflowError) as exc:
        return _failure(line_number, str(exc), line)
    return None  # unknown record type


def iter_records(
    lines: Iterable[str],
    *,
    units: Optional[Mapping[str, UnitCategory]] = None,
    failures: Optional[List[ParseFailure]] = None,
) -> Iterator[Record]:
    """Yield decoded records in log order, appending failures to *failures*."""
    for number, line in enumerate(lines, 1):
        parsed = parse_line(line, number, units)
        if parsed is None:
            continue
        if isinstance(parsed, ParseFailure):
            if failures is not None:
                failures.append(parsed)
            continue
        yield parsed


def read_log(path: str | Path) -> List[str]:
    """Read the whole log into memory; raise :class:`MissingInputFile` on I/O errors."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError as exc:
        raise MissingInputFile(path) from exc
    except OSError as exc:
        raise MissingInputFile(path, exc.strerror or str(exc)) from exc
    lines = text.splitlines()
    logger.info("Read %d lines from %s", len(lines), path)
    return lines

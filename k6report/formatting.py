"""Human-readable rendering of metric values."""

from __future__ import annotations

from typing import Optional

from k6report.model import UnitCategory

NO_DATA = "no data"

_SIZES = ("Bytes", "KB", "MB", "GB")


def _trim(value: float) -> str:
    """Two decimals, trailing zeros dropped (``1.50`` → ``1.5``)."""
    text = f"{value:.2f}"
    return text.rstrip("0").rstrip(".") if "." in text else text


def format_bytes(num: Optional[float]) -> str:
    if num is None:
        return NO_DATA
    if num == 0:
        return "0 Bytes"
    if abs(num) < 1:
        return f"{_trim(num)} Bytes"
    i = 0
    scaled = float(num)
    while abs(scaled) >= 1024 and i < len(_SIZES) - 1:
        scaled /= 1024
        i += 1
    return f"{_trim(scaled)} {_SIZES[i]}"


def format_duration(ms: Optional[float]) -> str:
    """Format a millisecond value using µs, ms, s or m."""
    if ms is None:
        return NO_DATA
    if ms < 1:
        return f"{ms * 1000:.2f} μs"
    if ms < 1000:
        return f"{ms:.2f} ms"
    if ms < 60_000:
        return f"{ms / 1000:.2f} s"
    return f"{ms / 60_000:.2f} m"


def format_count(value: Optional[float]) -> str:
    if value is None:
        return NO_DATA
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"


def format_metric_value(value: Optional[float], unit: UnitCategory) -> str:
    if value is None:
        return NO_DATA
    if unit is UnitCategory.TIME:
        return format_duration(value)
    if unit is UnitCategory.DATA:
        return format_bytes(value)
    if unit is UnitCategory.COUNT:
        return format_count(value)
    return f"{value:.2f}"

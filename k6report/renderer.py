"""
HTML report rendering.

``render_report`` is pure: the same :class:`ReportSnapshot` and
``generated_at`` always produce the same bytes. Plotly figures are embedded
with fixed ``div`` ids; the page loads plotly.js from the CDN build that
matches the installed plotly package.
"""

from __future__ import annotations

import html
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, List, Optional

import plotly.graph_objects as go
import plotly.io as pio
from plotly.offline import get_plotlyjs_version

from k6report.charts import ChartDataProvider
from k6report.errors import RenderIOFailure
from k6report.formatting import (
    NO_DATA,
    format_bytes,
    format_count,
    format_duration,
    format_metric_value,
)
from k6report.model import MetricSummary, ReportSnapshot, UnitCategory

logger = logging.getLogger(__name__)

COLORS = {
    "vus": "#1f77b4",
    "latency": "#ff7f0e",
    "distribution": "#2ca02c",
    "percentile": "#d62728",
    "rps": "#9467bd",
    "ok": "#2ecc71",
    "error": "#e74c3c",
}

_CHART_CONFIG = {"responsive": True, "displaylogo": False}

_CSS = """
body { font-family: Arial, sans-serif; margin: 0; padding: 20px; background: #f5f5f5; }
.container { max-width: 1200px; margin: 0 auto; background: white; padding: 20px;
             border-radius: 8px; box-shadow: 0 0 10px rgba(0,0,0,0.1); }
.summary { margin: 20px 0; padding: 15px; background: #e9ecef; border-radius: 4px; }
.summary p { margin: 4px 0; }
.warning { color: #8a6d3b; }
table { width: 100%; border-collapse: collapse; margin-top: 10px; }
th, td { padding: 8px; text-align: left; border-bottom: 1px solid #dee2e6; }
th { background-color: #f8f9fa; }
td.no-data { color: #999; font-style: italic; }
td.pass { color: #2e7d32; font-weight: bold; }
td.fail { color: #c62828; font-weight: bold; }
.chart-container { margin: 20px 0; padding: 15px; background: white; border-radius: 4px;
                   box-shadow: 0 2px 4px rgba(0,0,0,0.1); }
.charts-grid { display: grid; grid-template-columns: repeat(2, 1fr); gap: 20px; margin-top: 20px; }
@media (max-width: 1200px) { .charts-grid { grid-template-columns: 1fr; } }
"""

_TIME_COLUMNS = ("min", "max", "avg", "med", "p90", "p95", "p99")
_DATA_COLUMNS = ("min", "max", "avg", "total")
_OTHER_COLUMNS = ("count", "min", "max", "avg")
_HEADERS = {
    "min": "Min", "max": "Max", "avg": "Avg", "med": "Med",
    "p90": "p90", "p95": "p95", "p99": "p99", "total": "Total", "count": "Count",
}


# Small helpers

def _esc(value: object) -> str:
    return html.escape(str(value))


def _as_time(seconds: Iterable[float]) -> List[str]:
    return [datetime.fromtimestamp(s, timezone.utc).isoformat() for s in seconds]


def _utc(ts: Optional[float]) -> str:
    if ts is None:
        return NO_DATA
    return datetime.fromtimestamp(ts, timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


# Charts

def _figure_html(fig: go.Figure, div_id: str) -> str:
    return pio.to_html(
        fig,
        full_html=False,
        include_plotlyjs=False,
        div_id=div_id,
        config=_CHART_CONFIG,
    )


def _vu_chart(provider: ChartDataProvider) -> go.Figure:
    overlay = provider.vu_overlay()
    fig = go.Figure()
    fig.add_trace(
        go.Scatter(
            x=_as_time(overlay.response_times.x),
            y=overlay.response_times.y,
            name="Response Time (ms)",
            mode="markers",
            marker={"size": 4, "color": COLORS["latency"], "opacity": 0.5},
        )
    )
    fig.add_trace(
        go.Scatter(
            x=_as_time(overlay.vus.x),
            y=overlay.vus.y,
            name="Virtual Users",
            mode="lines",
            yaxis="y2",
            line={"color": COLORS["vus"]},
        )
    )
    fig.update_layout(
        xaxis={"title": {"text": "Time"}},
        yaxis={"title": {"text": "Response Time (ms)"}},
        yaxis2={"title": {"text": "Virtual Users"}, "overlaying": "y", "side": "right"},
        showlegend=True,
    )
    return fig


def _distribution_chart(provider: ChartDataProvider, width: float) -> go.Figure:
    dist = provider.latency_distribution()
    fig = go.Figure(
        go.Bar(
            x=dist.x,
            y=dist.y,
            name="Response Time Distribution",
            marker={"color": COLORS["distribution"]},
            offset=0,
            width=width,
        )
    )
    fig.update_layout(
        xaxis={"title": {"text": "Response Time (ms)"}},
        yaxis={"title": {"text": "Number of Requests"}},
        bargap=0.1,
    )
    return fig


def _percentile_chart(provider: ChartDataProvider) -> go.Figure:
    chart = provider.latency_percentiles()
    fig = go.Figure(
        go.Scatter(
            x=chart.curve.x,
            y=chart.curve.y,
            mode="lines",
            name="Response Time Percentiles",
            line={"shape": "spline", "color": COLORS["percentile"]},
        )
    )
    fig.update_layout(
        xaxis={"title": {"text": "Percentile"}, "ticksuffix": "th"},
        yaxis={"title": {"text": "Response Time (ms)"}},
        annotations=[
            {"x": p, "y": v, "text": f"P{p}", "showarrow": True, "arrowhead": 2, "ax": 30, "ay": -30}
            for p, v in chart.marks
        ],
    )
    return fig


def _rps_chart(provider: ChartDataProvider) -> go.Figure:
    rps = provider.requests_per_second()
    fig = go.Figure(
        go.Scatter(
            x=_as_time(rps.x),
            y=rps.y,
            mode="lines",
            name="Requests per Second",
            line={"shape": "spline", "color": COLORS["rps"]},
            fill="tozeroy",
            fillcolor="rgba(148, 103, 189, 0.1)",
        )
    )
    fig.update_layout(
        xaxis={"title": {"text": "Time"}},
        yaxis={"title": {"text": "Requests/Second"}, "rangemode": "tozero"},
    )
    return fig


def _status_chart(provider: ChartDataProvider) -> go.Figure:
    chart = provider.status_codes()
    fig = go.Figure(
        go.Bar(
            x=chart.codes,
            y=chart.counts,
            marker={"color": [COLORS["ok"] if ok else COLORS["error"] for ok in chart.success]},
            text=[str(c) for c in chart.counts],
            textposition="auto",
        )
    )
    fig.update_layout(
        xaxis={
            "title": {"text": "Status Code"},
            "type": "category",
            "tickmode": "array",
            "tickvals": chart.codes,
            "ticktext": chart.labels,
        },
        yaxis={"title": {"text": "Count"}, "rangemode": "tozero"},
    )
    return fig


def render_charts(snapshot: ReportSnapshot) -> List[tuple[str, str]]:
    """Return ``(title, html fragment)`` for the five report charts."""
    provider = ChartDataProvider(snapshot.timeseries, snapshot.status_success)
    width = snapshot.timeseries.latency_bucket_width
    charts = [
        ("Virtual Users & Response Time Over Time", "vuChart", _vu_chart(provider)),
        ("Response Time Distribution", "responseTimeDistribution", _distribution_chart(provider, width)),
        ("Response Time Percentiles", "percentileChart", _percentile_chart(provider)),
        ("Requests Per Second", "rpsChart", _rps_chart(provider)),
        ("HTTP Status Code Distribution", "statusCodesChart", _status_chart(provider)),
    ]
    return [(title, _figure_html(fig, div_id)) for title, div_id, fig in charts]


# Sections

def _summary_section(snapshot: ReportSnapshot, generated_at: datetime) -> str:
    s = snapshot.summary
    lines = [
        f"Report Generated: {generated_at.isoformat()}",
        f"Test Start: {_utc(snapshot.timeseries.start)}",
        f"Test Duration: {format_duration(s.duration_ms)}",
    ]
    if s.total_requests is not None:
        accepted = [code for code, ok in snapshot.status_success.items() if ok]
        label = f"Successful Requests ({'/'.join(accepted)})" if accepted else "Successful Requests"
        lines.append(f"Total Requests: {format_count(s.total_requests)}")
        lines.append(f"{label}: {format_count(s.successful_requests)}")
        lines.append(f"Failed Requests: {format_count(s.failed_requests)}")
        if s.success_rate is not None:
            lines.append(f"Success Rate: {s.success_rate:.2f}%")
    if s.avg_response_time is not None:
        lines.append(f"Average Response Time (Success Only): {format_duration(s.avg_response_time)}")
    if s.data_transferred is not None:
        lines.append(f"Data Transferred (Success Only): {format_bytes(s.data_transferred)}")

    body = "".join(f"<p>{_esc(line)}</p>" for line in lines)
    if snapshot.is_empty:
        body += '<p class="warning">No data: the log contained no usable samples.</p>'
    if snapshot.parse_failures:
        body += (
            f'<p class="warning">Skipped {len(snapshot.parse_failures)} malformed '
            f"line(s) (first: line {snapshot.parse_failures[0].line_number}).</p>"
        )
    return f'<div class="summary"><h2>Test Summary</h2>{body}</div>'


def _table(
    title: str,
    rows: List[tuple[str, MetricSummary]],
    columns: tuple[str, ...],
    cell: Callable[[MetricSummary, str], str],
) -> str:
    head = "".join(f"<th>{_HEADERS[c]}</th>" for c in columns)
    body = []
    for name, summary in rows:
        if summary.stats is None:
            cells = f'<td class="no-data" colspan="{len(columns)}">{NO_DATA}</td>'
        else:
            cells = "".join(f"<td>{_esc(cell(summary, c))}</td>" for c in columns)
        body.append(f"<tr><td>{_esc(name)}</td>{cells}</tr>")
    if not body:
        body.append(f'<tr><td class="no-data" colspan="{len(columns) + 1}">{NO_DATA}</td></tr>')
    return (
        f'<div class="metric-section"><h2>{_esc(title)}</h2>'
        f"<table><thead><tr><th>Metric</th>{head}</tr></thead>"
        f"<tbody>{''.join(body)}</tbody></table></div>"
    )


def _time_cell(summary: MetricSummary, column: str) -> str:
    return format_duration(getattr(summary.stats, column))


def _data_cell(summary: MetricSummary, column: str) -> str:
    return format_bytes(getattr(summary.stats, column))


def _other_cell(summary: MetricSummary, column: str) -> str:
    value = getattr(summary.stats, column)
    if column == "count":
        return format_count(value)
    return format_metric_value(value, summary.definition.unit)


def _metric_tables(snapshot: ReportSnapshot) -> str:
    by_unit: dict[UnitCategory, List[tuple[str, MetricSummary]]] = {unit: [] for unit in UnitCategory}
    for name, summary in snapshot.metrics.items():
        by_unit[summary.definition.unit].append((name, summary))

    parts = [
        _table("Response Time Metrics", by_unit[UnitCategory.TIME], _TIME_COLUMNS, _time_cell),
        _table("Data Transfer Metrics", by_unit[UnitCategory.DATA], _DATA_COLUMNS, _data_cell),
    ]
    other = by_unit[UnitCategory.COUNT] + by_unit[UnitCategory.UNITLESS]
    if other:
        parts.append(_table("Other Metrics", other, _OTHER_COLUMNS, _other_cell))
    return "".join(parts)


def _threshold_section(snapshot: ReportSnapshot) -> str:
    if not snapshot.thresholds:
        return ""
    rows = []
    for result in snapshot.thresholds:
        actual = format_metric_value(result.actual, result.unit)
        status = "PASS" if result.passed else "FAIL"
        rows.append(
            f"<tr><td>{_esc(result.metric)}</td><td>{_esc(result.expression)}</td>"
            f'<td>{_esc(actual)}</td><td class="{status.lower()}">{status}</td></tr>'
        )
    return (
        '<div class="metric-section"><h2>Thresholds</h2>'
        "<table><thead><tr><th>Metric</th><th>Threshold</th><th>Actual</th><th>Status</th></tr></thead>"
        f"<tbody>{''.join(rows)}</tbody></table></div>"
    )


# Public API

def render_report(snapshot: ReportSnapshot, generated_at: Optional[datetime] = None) -> str:
    """Render *snapshot* into one self-contained HTML document."""
    generated_at = generated_at or datetime.now(timezone.utc)
    title = f"{snapshot.title} - {generated_at.isoformat()}"
    charts = "".join(
        f'<div class="chart-container"><h3>{_esc(name)}</h3>{fragment}</div>'
        for name, fragment in render_charts(snapshot)
    )
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{_esc(title)}</title>
    <script src="https://cdn.plot.ly/plotly-{get_plotlyjs_version()}.min.js"></script>
    <style>{_CSS}</style>
</head>
<body>
<div class="container">
    <h1>{_esc(snapshot.title)}</h1>
    {_summary_section(snapshot, generated_at)}
    {_metric_tables(snapshot)}
    {_threshold_section(snapshot)}
    <h2>Performance Charts</h2>
    <div class="charts-grid">{charts}</div>
</div>
</body>
</html>
"""


def write_report(document: str, path: str | Path) -> Path:
    """Write *document* to *path*; :class:`RenderIOFailure` on any OS error."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(document, encoding="utf-8")
    except OSError as exc:
        raise RenderIOFailure(path, exc.strerror or str(exc)) from exc
    logger.info("Report written to %s (%d bytes)", path, len(document))
    return path

"""
Command-line interface (CLI) for the k6 report builder.

Example – write the HTML report
-------------------------------
    k6 run --out json=k6-output.json test.js
    k6report render k6-output.json --output load-test-report.html

Example – gate a CI job on thresholds
-------------------------------------
    k6report check k6-output.json -t "http_req_duration=p(95)<500"
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

from k6report.errors import ReportError
from k6report.formatting import NO_DATA, format_metric_value
from k6report.model import ReportSnapshot
from k6report.pipeline import analyse_file, build_report
from k6report.settings import ReportSettings, load_settings
from k6report.thresholds import parse_cli_threshold, parse_metric_key, parse_threshold

# Typer application instance
app = typer.Typer(
    add_completion=False,
    help="Summarise k6 JSON output into an HTML load-test report.",
)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _settings(
    config: Optional[Path],
    input_path: Optional[Path],
    output_path: Optional[Path] = None,
    success_status: Optional[List[str]] = None,
    thresholds: Optional[List[str]] = None,
) -> ReportSettings:
    """Settings file (or defaults) with command-line overrides applied."""
    settings = load_settings(config) if config else ReportSettings()
    update: dict = {}
    if input_path is not None:
        update["input_path"] = input_path
    if output_path is not None:
        update["output_path"] = output_path
    if success_status:
        update["success_statuses"] = [str(s) for s in success_status]
    if thresholds:
        merged = {k: list(v) for k, v in settings.thresholds.items()}
        for text in thresholds:
            metric, expression = parse_cli_threshold(text)
            parse_metric_key(metric)  # fail fast on typos
            parse_threshold(expression)
            merged.setdefault(metric, []).append(expression)
        update["thresholds"] = merged
    return settings.model_copy(update=update)


@app.command()
def render(
    input_path: Optional[Path] = typer.Argument(
        None, help="k6 JSON output file (default: k6-output.json)"
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="HTML report path (default: load-test-report.html)"
    ),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="JSON settings file"
    ),
    success_status: Optional[List[str]] = typer.Option(
        None, "--success-status", "-s", help="Status code counted as success (repeatable)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress"),
) -> None:
    """Build the HTML report; exit *1* if the log or report file is unusable."""
    _configure_logging(verbose)
    try:
        settings = _settings(config, input_path, output, success_status)
        path = build_report(settings)
    except ReportError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Report generated successfully: {path}")


def _print_table(snapshot: ReportSnapshot) -> None:
    """Statistics per metric, then one line per threshold."""
    typer.echo(f"{'Metric':<28}{'Count':>8}{'Avg':>14}{'p95':>14}{'Max':>14}")
    typer.echo("-" * 78)
    for name, summary in snapshot.metrics.items():
        unit = summary.definition.unit
        stats = summary.stats
        if stats is None:
            typer.echo(f"{name:<28}{NO_DATA:>8}")
            continue
        avg, p95, top = (format_metric_value(v, unit) for v in (stats.avg, stats.p95, stats.max))
        typer.echo(f"{name:<28}{stats.count:>8}{avg:>14}{p95:>14}{top:>14}")

    if not snapshot.thresholds:
        return
    typer.echo("")
    typer.echo(f"{'Threshold':<44}{'Actual':>16}{'Status':>10}")
    typer.echo("-" * 70)
    for result in snapshot.thresholds:
        label = f"{result.metric}: {result.expression}"
        actual = format_metric_value(result.actual, result.unit)
        typer.echo(f"{label:<44}{actual:>16}{'PASS' if result.passed else 'FAIL':>10}")


@app.command()
def check(
    input_path: Optional[Path] = typer.Argument(
        None, help="k6 JSON output file (default: k6-output.json)"
    ),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="JSON settings file"
    ),
    threshold: Optional[List[str]] = typer.Option(
        None, "--threshold", "-t", help="METRIC=EXPR, e.g. 'http_req_duration=p(95)<500'"
    ),
    success_status: Optional[List[str]] = typer.Option(
        None, "--success-status", "-s", help="Status code counted as success (repeatable)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress"),
) -> None:
    """Print statistics and exit with *0* if every threshold passes, *1* otherwise."""
    _configure_logging(verbose)
    try:
        settings = _settings(config, input_path, None, success_status, threshold)
        snapshot = analyse_file(settings.input_path, settings)
    except ReportError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    _print_table(snapshot)
    failed = [r for r in snapshot.thresholds if not r.passed]
    if snapshot.thresholds:
        typer.echo(f"Overall: {'FAIL' if failed else 'PASS'}")
    if failed:
        raise typer.Exit(code=1)


# ``python -m k6report.cli`` entry‑point

def main() -> None:  # pragma: no cover
    """Entry‑point for the ``k6report`` console script."""
    app()


if __name__ == "__main__":
    app()

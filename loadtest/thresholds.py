"""
Run summary, threshold evaluation, and the end-of-run report.

At the end of a run the harness condenses everything it measured into
a *summary*: a mapping of metric name to aggregation values::

    {
        "http_req_duration": {"avg": 41.2, "med": 38.0, "p(95)": 120.0, ...},
        "http_req_failed": {"rate": 0.0, "passes": 0, "fails": 1532, "count": 1532},
        "errors": {"rate": 0.004, ...},
        "checks": {"rate": 0.998, ...},
    }

Each :class:`~loadtest.profile.Threshold` is then looked up in that
summary and compared against its limit.  The same summary can be
exported as JSON and re-checked later by :mod:`loadtest.check_thresholds`.
"""

from __future__ import annotations

import json
import logging
import operator
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loadtest.metrics import CheckRegistry, Rate
from loadtest.profile import Threshold, percentile_key

logger = logging.getLogger(__name__)

Summary = dict[str, dict[str, float]]

_OPERATORS = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}

DEFAULT_PERCENTILES = (90.0, 95.0)


@dataclass(frozen=True)
class ThresholdResult:
    threshold: Threshold
    actual: float | None
    passed: bool

    @property
    def missing(self) -> bool:
        return self.actual is None


@dataclass(frozen=True)
class ThresholdReport:
    results: tuple[ThresholdResult, ...]

    @property
    def passed(self) -> bool:
        return all(result.passed for result in self.results)

    @property
    def failures(self) -> list[ThresholdResult]:
        return [result for result in self.results if not result.passed]


def requested_percentiles(thresholds: Iterable[Threshold]) -> tuple[float, ...]:
    """Return the default percentiles plus any a threshold refers to."""
    percents = set(DEFAULT_PERCENTILES)
    for threshold in thresholds:
        if threshold.aggregation.startswith("p("):
            percents.add(float(threshold.aggregation[2:-1]))
    return tuple(sorted(percents))


def summarize_requests(stats_entry: Any, percentiles: Iterable[float]) -> Summary:
    """
    Turn Locust's aggregated ``StatsEntry`` into the two HTTP metrics.

    Args:
        stats_entry: ``environment.stats.total`` from a Locust run.
        percentiles: Percentiles (0-100) to include for latency.

    Returns:
        ``http_req_duration`` and ``http_req_failed`` summaries.
    """
    requests_made = stats_entry.num_requests
    duration = {
        "avg": float(stats_entry.avg_response_time or 0.0),
        "min": float(stats_entry.min_response_time or 0.0),
        "max": float(stats_entry.max_response_time or 0.0),
        "med": float(stats_entry.median_response_time or 0.0),
        "count": requests_made,
    }
    for percent in percentiles:
        value = stats_entry.get_response_time_percentile(percent / 100.0) if requests_made else 0
        duration[percentile_key(percent)] = float(value or 0.0)

    failures = stats_entry.num_failures
    failed = {
        "rate": failures / requests_made if requests_made else 0.0,
        "passes": failures,
        "fails": requests_made - failures,
        "count": requests_made,
    }
    return {"http_req_duration": duration, "http_req_failed": failed}


def build_summary(
    *,
    error_rate: Rate,
    checks: CheckRegistry,
    stats_entry: Any | None = None,
    percentiles: Iterable[float] = DEFAULT_PERCENTILES,
) -> Summary:
    """
    Assemble the full run summary.

    ``stats_entry`` is optional so that a run driven outside Locust can
    still be judged on ``errors`` and ``checks``.
    """
    summary: Summary = {}
    if stats_entry is not None:
        summary.update(summarize_requests(stats_entry, percentiles))
    summary[error_rate.name] = error_rate.snapshot()
    summary["checks"] = checks.overall()
    return summary


def evaluate(thresholds: Iterable[Threshold], summary: Mapping[str, Mapping[str, Any]]) -> ThresholdReport:
    """
    Compare every threshold with the summary.

    A threshold whose metric or aggregation is absent fails, since a
    gate that cannot be measured must not pass silently.
    """
    results = []
    for threshold in thresholds:
        values = summary.get(threshold.metric) or {}
        actual = values.get(threshold.aggregation)
        if actual is None:
            logger.warning(
                "No %s value for metric %s; threshold %r fails",
                threshold.aggregation,
                threshold.metric,
                threshold.expression,
            )
            results.append(ThresholdResult(threshold=threshold, actual=None, passed=False))
            continue

        actual = float(actual)
        passed = _OPERATORS[threshold.operator](actual, threshold.limit)
        results.append(ThresholdResult(threshold=threshold, actual=actual, passed=passed))

    return ThresholdReport(results=tuple(results))


def format_report(report: ThresholdReport, checks: CheckRegistry | None = None) -> str:
    """Render thresholds (and optionally per-check counts) as a text table."""
    lines = [
        "Performance Threshold Check",
        "-" * 72,
        f"{'Metric':<22}{'Threshold':<16}{'Actual':>14}{'Status':>12}",
        "-" * 72,
    ]
    for result in report.results:
        actual = "n/a" if result.missing else f"{result.actual:.4f}"
        status = "PASS" if result.passed else "FAIL"
        lines.append(
            f"{result.threshold.metric:<22}{result.threshold.expression:<16}{actual:>14}{status:>12}"
        )

    if checks is not None and checks.items():
        lines.append("-" * 72)
        lines.append(f"{'Check':<38}{'Passed':>10}{'Failed':>10}{'Rate':>14}")
        for name, rate in checks.items():
            snapshot = rate.snapshot()
            lines.append(
                f"{name:<38}{snapshot['passes']:>10}{snapshot['fails']:>10}{snapshot['rate']:>14.2%}"
            )

    lines.append("-" * 72)
    lines.append(f"Overall: {'PASS' if report.passed else 'FAIL'}")
    return "\n".join(lines)


def write_summary(path: str | Path, summary: Summary, report: ThresholdReport) -> None:
    """Export the summary and threshold outcomes as JSON."""
    payload = {
        "metrics": summary,
        "thresholds": [
            {
                "metric": result.threshold.metric,
                "expression": result.threshold.expression,
                "actual": result.actual,
                "passed": result.passed,
            }
            for result in report.results
        ],
        "passed": report.passed,
    }
    path = Path(path)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2)
    logger.info("Wrote run summary to %s", path)


def load_summary(path: str | Path) -> Summary:
    """
    Read the ``metrics`` section of an exported summary.

    Raises:
        ValueError: If the file is not a summary export.
    """
    with Path(path).open("r", encoding="utf-8") as handle:
        data = json.load(handle)

    metrics = data.get("metrics") if isinstance(data, dict) else None
    if not isinstance(metrics, dict):
        raise ValueError(f"{path} does not contain a 'metrics' mapping")
    return metrics

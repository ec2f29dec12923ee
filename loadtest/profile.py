"""
Ramp stages and threshold declarations for the load test.

A :class:`LoadProfile` bundles the two pieces of run configuration the
runtime consumes: the ordered list of :class:`Stage` objects describing
how many virtual users should be active over time, and the
:class:`Threshold` conditions the finished run is judged against.

The built-in :data:`DEFAULT_PROFILE` ramps 10 → 50 → 100 → 100 → 50 → 0
users over four minutes.  A YAML file with the same shape can replace
it::

    stages:
      - {duration: 30s, target: 10}
      - {duration: 1m, target: 50}
    thresholds:
      http_req_duration: ["p(95)<300"]
      errors: ["rate<0.01"]
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}

_THRESHOLD_EXPRESSION = re.compile(
    r"^\s*(?P<agg>avg|min|max|med|count|rate|p\(\s*(?P<pct>\d+(?:\.\d+)?)\s*\))"
    r"\s*(?P<op><=|>=|==|!=|<|>)\s*(?P<limit>-?\d+(?:\.\d+)?)\s*$"
)


@dataclass(frozen=True)
class Stage:
    """One ramp segment: reach *target* users over *duration* seconds."""

    duration: float
    target: int


@dataclass(frozen=True)
class Threshold:
    """
    A pass/fail condition on one aggregated metric.

    Attributes:
        metric: Summary metric name, e.g. ``http_req_duration``.
        expression: The original text, e.g. ``p(95)<300``.
        aggregation: Normalised aggregation key, e.g. ``p(95)`` or ``rate``.
        operator: Comparison operator.
        limit: Right-hand side of the comparison.
    """

    metric: str
    expression: str
    aggregation: str
    operator: str
    limit: float


@dataclass(frozen=True)
class LoadProfile:
    stages: tuple[Stage, ...]
    thresholds: tuple[Threshold, ...]

    @property
    def total_duration(self) -> float:
        return sum(stage.duration for stage in self.stages)


def percentile_key(percent: float) -> str:
    """Return the summary key for a percentile, e.g. ``95.0`` -> ``p(95)``."""
    return f"p({percent:g})"


def parse_duration(value: Any) -> float:
    """
    Convert a duration such as ``30s``, ``1m30s`` or ``250ms`` to seconds.

    Bare numbers are taken as seconds.

    Raises:
        ValueError: If the value is empty, negative, or not a duration.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"Duration must not be negative: {value!r}")
        return float(value)

    text = str(value).strip()
    if not text:
        raise ValueError("Duration must not be empty")

    position = 0
    seconds = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()

    if position != len(text):
        raise ValueError(f"Invalid duration: {value!r}")
    return seconds


def parse_threshold(metric: str, expression: str) -> Threshold:
    """
    Parse a threshold expression such as ``p(95)<300`` or ``rate<0.01``.

    Raises:
        ValueError: If the expression does not match the grammar.
    """
    match = _THRESHOLD_EXPRESSION.match(expression)
    if match is None:
        raise ValueError(f"Invalid threshold for {metric}: {expression!r}")

    aggregation = match.group("agg")
    if match.group("pct") is not None:
        percent = float(match.group("pct"))
        if not 0 < percent <= 100:
            raise ValueError(f"Percentile out of range for {metric}: {expression!r}")
        aggregation = percentile_key(percent)

    return Threshold(
        metric=metric,
        expression=expression.strip(),
        aggregation=aggregation,
        operator=match.group("op"),
        limit=float(match.group("limit")),
    )


DEFAULT_STAGES: tuple[Stage, ...] = (
    Stage(duration=30, target=10),
    Stage(duration=60, target=50),
    Stage(duration=30, target=100),
    Stage(duration=60, target=100),
    Stage(duration=30, target=50),
    Stage(duration=30, target=0),
)

DEFAULT_THRESHOLDS: tuple[Threshold, ...] = (
    parse_threshold("http_req_duration", "p(95)<300"),
    parse_threshold("http_req_failed", "rate<0.01"),
    parse_threshold("errors", "rate<0.01"),
)

DEFAULT_PROFILE = LoadProfile(stages=DEFAULT_STAGES, thresholds=DEFAULT_THRESHOLDS)


def _parse_stages(raw: Any) -> tuple[Stage, ...]:
    if not isinstance(raw, list) or not raw:
        raise ValueError("Profile 'stages' must be a non-empty list")

    stages = []
    for entry in raw:
        try:
            duration = parse_duration(entry["duration"])
            target = int(entry["target"])
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Stage needs 'duration' and 'target': {entry!r}") from exc
        if target < 0:
            raise ValueError(f"Stage target must not be negative: {entry!r}")
        stages.append(Stage(duration=duration, target=target))
    return tuple(stages)


def _parse_thresholds(raw: Any) -> tuple[Threshold, ...]:
    if not isinstance(raw, dict):
        raise ValueError("Profile 'thresholds' must map metric names to expressions")

    thresholds = []
    for metric, expressions in raw.items():
        if isinstance(expressions, str):
            expressions = [expressions]
        if not isinstance(expressions, list):
            raise ValueError(f"Thresholds for {metric} must be a list of expressions")
        thresholds.extend(parse_threshold(str(metric), str(expr)) for expr in expressions)
    return tuple(thresholds)


def load_profile(path: str | Path | None = None) -> LoadProfile:
    """
    Read a load profile from YAML, or return the built-in default.

    Either section may be omitted, in which case the default stages or
    thresholds are kept.

    Args:
        path: YAML file to read.  ``None`` selects :data:`DEFAULT_PROFILE`.

    Returns:
        The resulting :class:`LoadProfile`.

    Raises:
        ValueError: If a section is present but malformed.
    """
    if path is None:
        return DEFAULT_PROFILE

    path = Path(path)
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Profile {path} must contain a mapping")

    stages = _parse_stages(data["stages"]) if "stages" in data else DEFAULT_STAGES
    thresholds = (
        _parse_thresholds(data["thresholds"]) if "thresholds" in data else DEFAULT_THRESHOLDS
    )

    logger.info(
        "Loaded profile %s: %d stages, %d thresholds", path, len(stages), len(thresholds)
    )
    return LoadProfile(stages=stages, thresholds=thresholds)


def ramp_at(stages: tuple[Stage, ...], elapsed: float) -> tuple[int, float] | None:
    """
    Return ``(users, spawn_rate)`` for a moment of the run, or ``None`` when done.

    Users move linearly from the previous stage's target (zero before
    the first stage) to the current stage's target, so a stage of
    ``30s → 10`` reaches 10 users exactly as it ends.
    """
    previous_target = 0
    stage_start = 0.0

    for stage in stages:
        stage_end = stage_start + stage.duration
        if elapsed < stage_end:
            progress = (elapsed - stage_start) / stage.duration
            users = round(previous_target + (stage.target - previous_target) * progress)
            spawn_rate = max(abs(stage.target - previous_target) / stage.duration, 1.0)
            return users, spawn_rate
        previous_target = stage.target
        stage_start = stage_end

    return None

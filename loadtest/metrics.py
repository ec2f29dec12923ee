"""
Thread-safe metric accumulators for the load test.

Locust already aggregates request timings and failures.  This module
adds the two things it does not track on its own:

- :class:`Rate`: a counter of boolean samples (e.g. the ``errors``
  metric, where ``True`` means the iteration failed).
- :class:`CheckRegistry`: one :class:`Rate` per named check, so the
  final report can show how often ``status is 201`` or
  ``health check ok`` held.

Both are created once per run and handed to every virtual user; writes
from concurrent users are independent and unordered.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any

logger = logging.getLogger(__name__)

# Raised by predicates inspecting a response that lacks the expected shape.
_MALFORMED_SUBJECT_ERRORS = (AttributeError, KeyError, TypeError, ValueError)


class Rate:
    """
    Accumulate boolean samples and report the share that were ``True``.

    Attributes:
        name: Metric name used in summaries and reports.
    """

    def __init__(self, name: str):
        self.name = name
        self._lock = threading.Lock()
        self._true = 0
        self._false = 0

    def add(self, value: bool) -> None:
        """Record one sample."""
        with self._lock:
            if value:
                self._true += 1
            else:
                self._false += 1

    @property
    def passes(self) -> int:
        """Number of ``True`` samples."""
        with self._lock:
            return self._true

    @property
    def fails(self) -> int:
        """Number of ``False`` samples."""
        with self._lock:
            return self._false

    @property
    def total(self) -> int:
        with self._lock:
            return self._true + self._false

    @property
    def rate(self) -> float:
        """Share of ``True`` samples, or ``0.0`` before the first sample."""
        with self._lock:
            total = self._true + self._false
            return self._true / total if total else 0.0

    def snapshot(self) -> dict[str, float]:
        """Return ``rate``, ``passes``, ``fails`` and ``count`` read under one lock."""
        with self._lock:
            total = self._true + self._false
            return {
                "rate": self._true / total if total else 0.0,
                "passes": self._true,
                "fails": self._false,
                "count": total,
            }

    def __repr__(self) -> str:
        return f"<Rate {self.name} {self.passes}/{self.total}>"


class CheckRegistry:
    """
    Named pass/fail counters for response checks.

    Checks are registered lazily the first time they are evaluated and
    keep their first-seen order for reporting.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._checks: dict[str, Rate] = {}

    def _rate_for(self, name: str) -> Rate:
        with self._lock:
            rate = self._checks.get(name)
            if rate is None:
                rate = self._checks[name] = Rate(name)
            return rate

    def check(self, subject: Any, predicates: Mapping[str, Callable[[Any], bool]]) -> bool:
        """
        Evaluate every predicate against *subject* and record each outcome.

        All predicates run even after one fails, so every check gets a
        sample.  A predicate that trips over a malformed response
        (``AttributeError``, ``KeyError``, ``TypeError`` or
        ``ValueError``) counts as failed and is logged; any other
        exception propagates.

        Args:
            subject: Usually a response object, or ``None`` when the
                request never produced one.
            predicates: Check name → predicate.

        Returns:
            ``True`` only if every predicate passed.
        """
        all_passed = True
        for name, predicate in predicates.items():
            try:
                passed = bool(predicate(subject))
            except _MALFORMED_SUBJECT_ERRORS as exc:
                logger.warning("Check %r raised %r; counting as failed", name, exc)
                passed = False
            self._rate_for(name).add(passed)
            all_passed = all_passed and passed
        return all_passed

    def get(self, name: str) -> Rate | None:
        with self._lock:
            return self._checks.get(name)

    def items(self) -> list[tuple[str, Rate]]:
        with self._lock:
            return list(self._checks.items())

    def overall(self) -> dict[str, float]:
        """Combine every check into one rate summary (the ``checks`` metric)."""
        passes = fails = 0
        for _name, rate in self.items():
            snapshot = rate.snapshot()
            passes += snapshot["passes"]
            fails += snapshot["fails"]
        total = passes + fails
        return {
            "rate": passes / total if total else 0.0,
            "passes": passes,
            "fails": fails,
            "count": total,
        }

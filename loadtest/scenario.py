"""
The PR reviewer workload: setup, per-user iteration, and teardown.

:class:`Scenario` is the contract a harness drives.  ``setup`` runs
once, ``run_iteration`` runs in a loop inside every virtual user, and
``teardown`` runs once after the ramp finishes.  The harness owns
scheduling; a scenario never coordinates between users.

:class:`PullRequestScenario` seeds a handful of teams, then opens pull
requests authored by members of those teams and records whether each
one came back ``201`` within the latency budget.

Key Concepts Demonstrated:
- Dependency injection of the HTTP client, metrics, randomness, clock
  and sleep so the workload runs unchanged under Locust and in tests
- Failures are recorded as samples, never raised, so one bad response
  cannot stop a virtual user
"""

from __future__ import annotations

import logging
import random
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import requests

from loadtest.config import Config, get_config
from loadtest.metrics import CheckRegistry, Rate
from loadtest.payloads import (
    error_code,
    pull_request_payload,
    safe_json,
    team_name,
    team_payload,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeedContext:
    """Teams that setup created successfully, shared read-only by every user."""

    teams: tuple[str, ...] = ()


class Scenario(ABC):
    """Lifecycle a load harness invokes: once, many times, once."""

    @abstractmethod
    def setup(self) -> SeedContext:
        """Prepare shared data before any virtual user starts."""

    @abstractmethod
    def run_iteration(self, context: SeedContext | None) -> None:
        """Perform one unit of work for one virtual user."""

    @abstractmethod
    def teardown(self, context: SeedContext | None) -> None:
        """Run final checks after load has stopped."""


class PullRequestScenario(Scenario):
    """
    Seed teams, then open pull requests against them.

    Attributes:
        client: Anything with ``request(method, url, json=..., timeout=...)``,
            i.e. a Locust ``HttpSession`` or a ``requests.Session``.
        base_url: Service address that request paths are joined to.
        error_rate: Receives ``True`` for each failed iteration.
        checks: Receives one sample per named check.
        timer: Monotonic clock in seconds.  The latency check measures
            the whole request with it, body download included, the same
            span Locust reports as the response time.  ``requests``'
            own ``elapsed`` stops at the headers.
    """

    def __init__(
        self,
        client: Any,
        *,
        error_rate: Rate,
        checks: CheckRegistry,
        base_url: str | None = None,
        settings: type[Config] | None = None,
        rng: random.Random | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
        timer: Callable[[], float] = time.perf_counter,
    ):
        self.settings = settings or get_config()
        self.client = client
        self.base_url = (base_url or self.settings.BASE_URL).rstrip("/")
        self.error_rate = error_rate
        self.checks = checks
        self.rng = rng or random.Random()
        self.sleep = sleep
        self.clock = clock
        self.timer = timer

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _send(self, method: str, path: str, **kwargs: Any) -> Any | None:
        """
        Issue one request, returning ``None`` when no response arrived.

        Locust's ``HttpSession`` already converts transport errors into
        a response with ``status_code == 0``; a plain ``requests``
        session raises instead, which is folded into ``None`` here.
        """
        try:
            return self.client.request(
                method,
                self._url(path),
                timeout=self.settings.REQUEST_TIMEOUT,
                **kwargs,
            )
        except requests.RequestException as exc:
            logger.debug("%s %s failed: %s", method, path, exc)
            return None

    # ---- setup -----------------------------------------------------

    def setup(self) -> SeedContext:
        """
        Create ``SEED_TEAM_COUNT`` teams one after another.

        A team that is not answered with ``201`` is left out of the
        result, shrinking the pool the iterations choose from.

        Returns:
            The teams that were created, in creation order.
        """
        count = self.settings.SEED_TEAM_COUNT
        teams = []

        for index in range(1, count + 1):
            name = team_name(index)
            response = self._send(
                "POST",
                "/team/add",
                json=team_payload(index, self.settings.MEMBERS_PER_TEAM),
            )
            if response is None:
                logger.warning("Seeding %s failed: no response", name)
                continue
            if response.status_code != 201:
                logger.warning(
                    "Seeding %s rejected: status=%s code=%s",
                    name,
                    response.status_code,
                    error_code(response),
                )
                continue
            teams.append(name)

        logger.info("Seeded %d/%d teams: %s", len(teams), count, ", ".join(teams) or "-")
        return SeedContext(teams=tuple(teams))

    # ---- main iteration --------------------------------------------

    def run_iteration(self, context: SeedContext | None) -> None:
        """
        Open one pull request for a random seeded team.

        With no seeded teams the iteration only idles, making no
        request and recording no sample.
        """
        if context is None or not context.teams:
            self.sleep(self.settings.IDLE_SLEEP)
            return

        team = self.rng.choice(context.teams)
        payload = pull_request_payload(team, rng=self.rng, clock=self.clock)
        started = self.timer()
        response = self._send("POST", "/pullRequest/create", json=payload)
        duration_ms = (self.timer() - started) * 1000.0

        budget_ms = self.settings.LATENCY_BUDGET_MS
        success = self.checks.check(
            response,
            {
                "status is 201": lambda r: r is not None and r.status_code == 201,
                f"response time < {budget_ms:g}ms": (
                    lambda r: r is not None and duration_ms < budget_ms
                ),
            },
        )
        self.error_rate.add(not success)

        self.sleep(self.settings.THINK_TIME)

    # ---- teardown --------------------------------------------------

    def teardown(self, context: SeedContext | None) -> None:
        """Confirm the service is still healthy and still serving stats."""
        health = self._send("GET", "/health")
        self.checks.check(
            health,
            {"health check ok": lambda r: r is not None and r.status_code == 200},
        )

        stats = self._send("GET", "/stats")
        stats_ok = self.checks.check(
            stats,
            {"stats available": lambda r: r is not None and r.status_code == 200},
        )

        if stats_ok:
            pr_stats = safe_json(stats).get("pr_stats")
            if isinstance(pr_stats, dict):
                logger.info(
                    "Service stats: total_prs=%s open_prs=%s merged_prs=%s",
                    pr_stats.get("total_prs"),
                    pr_stats.get("open_prs"),
                    pr_stats.get("merged_prs"),
                )

# ruff: noqa: E402
"""
Locust entrypoint for the PR reviewer load test.

This is the file the ``locust`` CLI loads.  It adapts
:class:`~loadtest.scenario.PullRequestScenario` to Locust's lifecycle:

- ``test_start`` runs the scenario's setup once and shares the seeded
  teams and metric accumulators with every virtual user.
- :class:`PullRequestUser` runs one scenario iteration per task tick.
- :class:`PullRequestRampShape` follows the profile's stages.
- ``test_stop`` runs teardown, judges the thresholds, logs the report,
  and sets a non-zero exit code when any threshold is breached.

Usage examples::

    # Headless run against a local service:
    locust -f loadtest/locustfile.py --headless --host http://localhost:8080

    # Custom ramp/thresholds and a summary for the CI gate:
    LOADTEST_PROFILE=profile.yml SUMMARY_EXPORT=summary.json \\
        locust -f loadtest/locustfile.py --headless

Only standalone and worker processes seed and judge the run; a master
process has no users of its own.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path

from locust import HttpUser, LoadTestShape, constant, events, task
from locust.clients import HttpSession
from locust.exception import StopUser
from locust.runners import MasterRunner

# Locust puts only this file's directory on ``sys.path``; inserting the
# project root lets ``loadtest.*`` resolve without an installed package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from loadtest.config import Config, get_config
from loadtest.metrics import CheckRegistry, Rate
from loadtest.profile import LoadProfile, load_profile, ramp_at
from loadtest.scenario import PullRequestScenario, SeedContext
from loadtest.thresholds import (
    build_summary,
    evaluate,
    format_report,
    requested_percentiles,
    write_summary,
)

logger = logging.getLogger(__name__)

PROFILE = load_profile(get_config().PROFILE_PATH)


@dataclass
class LoadRun:
    """
    State shared by every virtual user for the length of one run.

    Attributes:
        settings: Config class resolved at test start.
        profile: Stages and thresholds being applied.
        error_rate: ``errors`` metric; ``True`` marks a failed iteration.
        checks: Per-check pass/fail counters.
        context: Teams seeded during setup.
        scenario: Scenario instance used for setup and teardown.
        session: HTTP session behind ``scenario``; closed after teardown.
    """

    settings: type[Config]
    profile: LoadProfile
    error_rate: Rate = field(default_factory=lambda: Rate("errors"))
    checks: CheckRegistry = field(default_factory=CheckRegistry)
    context: SeedContext = field(default_factory=SeedContext)
    scenario: PullRequestScenario | None = None
    session: HttpSession | None = None


@events.test_start.add_listener
def on_test_start(environment, **_kwargs) -> None:
    """Seed teams through a stats-reporting session and publish the run state."""
    if isinstance(environment.runner, MasterRunner):
        return

    settings = get_config()
    base_url = environment.host or settings.BASE_URL

    # Bound to Locust's request event so setup traffic shows up in the
    # stats, just like the virtual users' own requests.
    session = HttpSession(
        base_url=base_url,
        request_event=environment.events.request,
        user=None,
    )

    run = LoadRun(settings=settings, profile=PROFILE, session=session)
    run.scenario = PullRequestScenario(
        session,
        base_url=base_url,
        error_rate=run.error_rate,
        checks=run.checks,
        settings=settings,
    )
    run.context = run.scenario.setup()
    environment.load_run = run


@events.test_stop.add_listener
def on_test_stop(environment, **_kwargs) -> None:
    """Run teardown, then judge the run against the profile's thresholds."""
    run = getattr(environment, "load_run", None)
    if run is None or run.scenario is None:
        return
    # test_stop can fire more than once (stop, then quit).
    environment.load_run = None

    try:
        run.scenario.teardown(run.context)
    finally:
        if run.session is not None:
            run.session.close()

    thresholds = run.profile.thresholds
    summary = build_summary(
        error_rate=run.error_rate,
        checks=run.checks,
        stats_entry=environment.stats.total,
        percentiles=requested_percentiles(thresholds),
    )
    report = evaluate(thresholds, summary)
    logger.info("Load test finished\n%s", format_report(report, run.checks))

    if run.settings.SUMMARY_PATH:
        write_summary(run.settings.SUMMARY_PATH, summary, report)

    if not report.passed:
        logger.error(
            "Thresholds breached: %s",
            ", ".join(
                f"{result.threshold.metric} {result.threshold.expression}"
                for result in report.failures
            ),
        )
        environment.process_exit_code = 1


class PullRequestUser(HttpUser):
    """
    Virtual user that keeps opening pull requests for seeded teams.

    The scenario sleeps after every iteration itself, so Locust's own
    wait time is zero.
    """

    host = get_config().BASE_URL
    wait_time = constant(0)

    scenario: PullRequestScenario
    context: SeedContext

    def on_start(self) -> None:
        """Bind a scenario to this user's HTTP session and the shared run state."""
        run = getattr(self.environment, "load_run", None)
        if run is None:
            raise StopUser("Setup did not run")

        self.context = run.context
        self.scenario = PullRequestScenario(
            self.client,
            base_url=self.environment.host or self.host,
            error_rate=run.error_rate,
            checks=run.checks,
            settings=run.settings,
        )

    @task
    def open_pull_request(self) -> None:
        self.scenario.run_iteration(self.context)


class PullRequestRampShape(LoadTestShape):
    """Ramp users linearly between the profile's stage targets."""

    stages = PROFILE.stages

    def tick(self):
        return ramp_at(self.stages, self.get_run_time())

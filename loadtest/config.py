"""
Load Test: Configuration.

Defines environment-specific configuration classes for the PR reviewer
service load test.  Each class captures the address of the service under
test and the knobs of the workload (seed sizes, think-time, latency
budget, HTTP timeout).  The ``get_config`` factory selects the right

class based on the ``LOADTEST_ENV`` environment variable (or an explicit
key).

Key Concepts Demonstrated:
- Class-based configuration with inheritance for DRY defaults
- Environment-variable overrides so CI can retarget the run
- Separate testing configuration with short timeouts and no sleeps
"""

from __future__ import annotations

import os


class Config:
    """
    Base (shared) configuration for the load test.

    All environment-specific classes inherit from ``Config`` so that
    common defaults only need to be stated once.  Locust's ``--host``
    option takes precedence over ``BASE_URL`` when both are given.
    """

    # Address of the PR reviewer service.
    BASE_URL: str = os.environ.get("BASE_URL", "http://localhost:8080")

    # Seconds to wait for any single response before counting it as failed.
    REQUEST_TIMEOUT: float = float(os.environ.get("REQUEST_TIMEOUT", "10"))

    # Teams created during setup, and members per team.
    SEED_TEAM_COUNT: int = 5
    MEMBERS_PER_TEAM: int = 3

    # Pause after every iteration, and while no team is available.
    THINK_TIME: float = 0.1
    IDLE_SLEEP: float = 1.0

    # A create-PR response slower than this fails its latency check.
    LATENCY_BUDGET_MS: float = 300.0

    # Optional YAML file overriding the built-in stages and thresholds.
    PROFILE_PATH: str | None = os.environ.get("LOADTEST_PROFILE")

    # Optional path where the end-of-run summary is written as JSON.
    SUMMARY_PATH: str | None = os.environ.get("SUMMARY_EXPORT")


class DevelopmentConfig(Config):
    """Local runs against a service on the developer's machine."""


class TestingConfig(Config):
    """
    Test-suite overrides.

    Points at a non-routable host so that unit tests never hit a real
    service, and removes every sleep so iterations return immediately.
    """

    BASE_URL: str = os.environ.get("TEST_BASE_URL", "http://pr-reviewer.test")
    REQUEST_TIMEOUT: float = float(os.environ.get("TEST_REQUEST_TIMEOUT", "1"))
    THINK_TIME: float = 0.0
    IDLE_SLEEP: float = 0.0


class ProductionConfig(Config):
    """
    Runs against a deployed environment.

    All values are expected to come from environment variables set by
    the CI job that launches Locust.
    """


# Lookup table mapping environment name strings to their config classes.
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}


def get_config(env: str | None = None) -> type[Config]:
    """
    Return the configuration class for the given environment.

    Args:
        env: One of ``"development"``, ``"testing"``, or
            ``"production"``.  When *None*, the ``LOADTEST_ENV``
            environment variable is consulted, falling back to
            ``"development"`` if unset.

    Returns:
        The ``Config`` subclass matching the requested environment,
        or ``DevelopmentConfig`` if the key is unrecognised.
    """
    if env is None:
        env = os.environ.get("LOADTEST_ENV", "development")
    return config.get(env, config["default"])

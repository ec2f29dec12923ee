"""
Load test for the PR reviewer service (Locust-based).

Drives the service with synthetic pull-request traffic while ramping
virtual users through staged targets, then judges the run against
latency and error-rate thresholds.

Layout:

- :mod:`.config`: environment-specific settings (``BASE_URL`` etc.)
- :mod:`.profile`: ramp stages and threshold declarations
- :mod:`.payloads`: request bodies for teams and pull requests
- :mod:`.metrics`: thread-safe rate accumulators and named checks
- :mod:`.scenario`: the setup / iteration / teardown workload
- :mod:`.thresholds`: run summary, threshold evaluation, final report
- :mod:`.locustfile`: Locust user, ramp shape and lifecycle hooks
- :mod:`.check_thresholds`: CI gate over an exported summary

Usage::

    locust -f loadtest/locustfile.py --headless --host http://localhost:8080
"""

import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

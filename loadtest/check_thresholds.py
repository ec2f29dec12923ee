"""
Validate an exported run summary against threshold configuration.

After a Locust run completes with ``SUMMARY_EXPORT`` set, CI invokes
this script to decide whether the build passes or fails.  It reads the
summary JSON written at the end of the run, loads the thresholds from
a profile YAML (or the built-in defaults), and prints one row per
threshold.

Exit codes follow a three-state convention so that CI can distinguish
"thresholds breached" from "script crashed":

- ``0``: all thresholds passed
- ``1``: at least one threshold was breached
- ``2``: the script itself failed (missing file, bad YAML, etc.)

Usage::

    SUMMARY_EXPORT=summary.json locust -f loadtest/locustfile.py --headless ...
    python -m loadtest.check_thresholds --summary summary.json --profile profile.yml
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from loadtest.profile import load_profile
from loadtest.thresholds import evaluate, format_report, load_summary

# Three-state exit codes so CI can tell "test failed" from "script crashed".
EXIT_PASS = 0
EXIT_THRESHOLD_BREACH = 1
EXIT_SCRIPT_ERROR = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the threshold checker."""
    parser = argparse.ArgumentParser(
        description="Check an exported load-test summary against thresholds."
    )
    parser.add_argument(
        "--summary",
        required=True,
        type=Path,
        help="Path to the summary JSON written via SUMMARY_EXPORT",
    )
    parser.add_argument(
        "--profile",
        type=Path,
        default=None,
        help="Path to a profile YAML; built-in thresholds are used when omitted",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """
    Entry point: load thresholds and summary, compare, and print results.

    Returns:
        ``EXIT_PASS`` (0) if all thresholds are met,
        ``EXIT_THRESHOLD_BREACH`` (1) if any are exceeded, or
        ``EXIT_SCRIPT_ERROR`` (2) on unexpected failures.
    """
    args = parse_args(argv)

    try:
        profile = load_profile(args.profile)
        summary = load_summary(args.summary)
        report = evaluate(profile.thresholds, summary)
    except Exception as exc:
        print(f"Threshold check failed: {exc}", file=sys.stderr)
        return EXIT_SCRIPT_ERROR

    print(format_report(report))
    return EXIT_PASS if report.passed else EXIT_THRESHOLD_BREACH


if __name__ == "__main__":
    raise SystemExit(main())

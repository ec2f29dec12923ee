"""
Test suite for the PR reviewer load test.

This package contains:
- unit/: payloads, profile parsing, metrics, thresholds, scenario logic
- integration/: scenario lifecycle and Locust hooks against a live stub
- stub_service.py: in-memory Flask stand-in for the service under test
"""

"""
Integration tests for the load test.

These tests serve the Flask stub on a real socket and exercise:
- The full setup -> iterations -> teardown lifecycle over HTTP
- Failure injection (rejected seeds, service outage)
- Locust lifecycle hooks, ramp shape and exit-code handling
"""

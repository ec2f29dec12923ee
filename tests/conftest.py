"""
Shared pytest fixtures for the load test suite.

Provides two kinds of test doubles for the service under test:

- :class:`FakeSession`: an in-process HTTP client whose responses are
  scripted per request, for unit tests that must control status codes,
  latency, and transport errors exactly.
- ``stub_server``: the Flask stub from :mod:`tests.stub_service`
  served on a real socket in a background thread, for integration
  tests that exercise the full HTTP path with ``requests``.

Key SDET Concepts Demonstrated:
- Environment variable overrides before the code under test is imported
- Factory fixtures that start per-test servers and clean them up
- Deterministic randomness and sleeps through injected collaborators
"""

from __future__ import annotations

import os

os.environ["LOADTEST_ENV"] = "testing"

# gevent must patch the standard library before requests/ssl are imported.
import locust  # noqa: E402,F401

import random  # noqa: E402
import socket  # noqa: E402
import threading  # noqa: E402
from collections.abc import Callable  # noqa: E402
from datetime import timedelta  # noqa: E402
from types import SimpleNamespace  # noqa: E402
from typing import Any  # noqa: E402
from urllib.parse import urlsplit  # noqa: E402

import pytest  # noqa: E402
from werkzeug.serving import make_server  # noqa: E402

from loadtest.config import Config  # noqa: E402
from loadtest.metrics import CheckRegistry, Rate  # noqa: E402
from loadtest.scenario import PullRequestScenario  # noqa: E402
from tests.stub_service import create_stub_app  # noqa: E402


class FakeResponse:
    """
    Minimal stand-in for ``requests.Response``.

    ``elapsed_ms`` is the time to the headers, as ``requests`` reports
    it; ``duration_ms`` is the whole request including the body and
    defaults to the same value.
    """

    def __init__(
        self,
        status_code: int,
        body: Any = None,
        elapsed_ms: float = 5.0,
        duration_ms: float | None = None,
    ):
        self.status_code = status_code
        self._body = body
        self.elapsed = timedelta(milliseconds=elapsed_ms)
        self.duration_ms = elapsed_ms if duration_ms is None else duration_ms

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("Response has no JSON body")
        return self._body


def _default_responder(method: str, path: str, body: Any) -> FakeResponse:
    return FakeResponse(201 if method == "POST" else 200)


class FakeTimer:
    """Monotonic clock that only moves while a fake request is in flight."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms / 1000.0


class FakeSession:
    """
    Record every request and answer it from a responder function.

    The responder receives ``(method, path, json_body)`` and returns a
    :class:`FakeResponse`, or an exception instance to raise instead.
    When a :class:`FakeTimer` is given, each response advances it by
    its ``duration_ms``.
    """

    def __init__(
        self,
        responder: Callable[[str, str, Any], Any] | None = None,
        timer: FakeTimer | None = None,
    ):
        self.responder = responder or _default_responder
        self.timer = timer
        self.calls: list[SimpleNamespace] = []

    def request(self, method: str, url: str, json: Any = None, timeout: Any = None, **_kwargs):
        path = urlsplit(url).path
        self.calls.append(SimpleNamespace(method=method, path=path, json=json, timeout=timeout))
        result = self.responder(method, path, json)
        if isinstance(result, Exception):
            raise result
        if self.timer is not None:
            self.timer.advance(result.duration_ms)
        return result

    def calls_to(self, method: str, path: str) -> list[SimpleNamespace]:
        return [call for call in self.calls if call.method == method and call.path == path]


@pytest.fixture
def error_rate() -> Rate:
    return Rate("errors")


@pytest.fixture
def checks() -> CheckRegistry:
    return CheckRegistry()


@pytest.fixture
def sleeps() -> list[float]:
    """Collects every duration the scenario asked to sleep."""
    return []


@pytest.fixture
def make_scenario(error_rate, checks, sleeps):
    """
    Build a :class:`PullRequestScenario` with deterministic collaborators.

    Uses the base ``Config`` so sleep durations match a real run, while
    the recording sleep keeps tests instant.
    """

    def _make(client: Any, *, base_url: str = "http://pr-reviewer.test", seed: int = 1234, **overrides):
        options = {
            "error_rate": error_rate,
            "checks": checks,
            "base_url": base_url,
            "settings": Config,
            "rng": random.Random(seed),
            "sleep": sleeps.append,
        }
        options.update(overrides)
        return PullRequestScenario(client, **options)

    return _make


@pytest.fixture
def stub_server():
    """
    Start stub services on free ports for the duration of one test.

    Yields a function accepting :func:`create_stub_app` arguments and
    returning a namespace with ``url``, ``app`` and ``request_log``.
    """
    running = []

    def _start(**app_kwargs) -> SimpleNamespace:
        app = create_stub_app(**app_kwargs)
        server = make_server("127.0.0.1", 0, app, threaded=True)
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        running.append((server, thread))
        return SimpleNamespace(
            url=f"http://127.0.0.1:{server.server_port}",
            app=app,
            request_log=app.config["REQUEST_LOG"],
        )

    yield _start

    for server, thread in running:
        server.shutdown()
        thread.join(timeout=5)


@pytest.fixture
def closed_port_url() -> str:
    """Return a local URL on which nothing is listening."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"http://127.0.0.1:{port}"

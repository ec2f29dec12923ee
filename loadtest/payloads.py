"""
Request payload factories for the load test.

Keeps the naming conventions the scenario relies on in one place:
team ``team{n}`` owns members ``u{n}1`` … ``u{n}{k}``, and the first
member of each team authors every pull request opened for it.

Key Concepts Demonstrated:
- Collision-resistant identifiers from a millisecond timestamp plus a
  random suffix
- Injected ``random.Random`` and clock so tests can reproduce payloads
"""

from __future__ import annotations

import random
import string
import time
from collections.abc import Callable
from typing import Any

PULL_REQUEST_NAME = "Load test PR"

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def team_name(index: int) -> str:
    return f"team{index}"


def team_payload(index: int, members: int = 3) -> dict[str, Any]:
    """
    Build the ``/team/add`` body for team number *index*.

    Args:
        index: 1-based team number.
        members: How many active members to include.

    Returns:
        A JSON-serialisable dict with ``team_name`` and ``members``.
    """
    return {
        "team_name": team_name(index),
        "members": [
            {
                "user_id": f"u{index}{member}",
                "username": f"User{index}{member}",
                "is_active": True,
            }
            for member in range(1, members + 1)
        ],
    }


def author_id_for_team(name: str) -> str:
    """Return the id of the first member of *name*, e.g. ``team3`` -> ``u31``."""
    return f"u{name.removeprefix('team')}1"


def unique_pull_request_id(
    rng: random.Random | None = None,
    clock: Callable[[], float] = time.time,
) -> str:
    """
    Generate a pull request id that is unique across virtual users.

    Combines a millisecond timestamp with an eight-character random
    suffix.  Uniqueness is best-effort: two ids only collide if they
    share both the millisecond and the suffix.
    """
    rng = rng or random
    ts = int(clock() * 1000)
    suffix = "".join(rng.choices(_SUFFIX_ALPHABET, k=8))
    return f"pr-{ts}-{suffix}"


def pull_request_payload(
    team: str,
    rng: random.Random | None = None,
    clock: Callable[[], float] = time.time,
) -> dict[str, Any]:
    """Build the ``/pullRequest/create`` body authored by *team*'s first member."""
    return {
        "pull_request_id": unique_pull_request_id(rng, clock),
        "pull_request_name": PULL_REQUEST_NAME,
        "author_id": author_id_for_team(team),
    }


def safe_json(response: Any) -> dict[str, Any]:
    """
    Return response JSON as dict, or an empty dict if parsing fails.

    Error pages and connection failures carry no JSON body.  Wrapping
    the parse keeps a ``ValueError`` from escaping into the iteration.
    """
    try:
        data = response.json()
    except ValueError:
        return {}

    if isinstance(data, dict):
        return data
    return {}


def error_code(response: Any) -> str | None:
    """Extract ``error.code`` (e.g. ``TEAM_EXISTS``) from a service error body."""
    error = safe_json(response).get("error")
    if isinstance(error, dict):
        code = error.get("code")
        return code if isinstance(code, str) else None
    return None

"""
Unit tests for request payload factories.
"""

import random
import re

import pytest

from loadtest.payloads import (
    PULL_REQUEST_NAME,
    author_id_for_team,
    error_code,
    pull_request_payload,
    safe_json,
    team_payload,
    unique_pull_request_id,
)
from tests.conftest import FakeResponse

pytestmark = pytest.mark.unit


def test_team_payload_lists_active_members_named_after_team():
    # Act
    payload = team_payload(2)

    # Assert
    assert payload == {
        "team_name": "team2",
        "members": [
            {"user_id": "u21", "username": "User21", "is_active": True},
            {"user_id": "u22", "username": "User22", "is_active": True},
            {"user_id": "u23", "username": "User23", "is_active": True},
        ],
    }


def test_team_payload_member_count_is_configurable():
    payload = team_payload(4, members=5)

    assert [m["user_id"] for m in payload["members"]] == ["u41", "u42", "u43", "u44", "u45"]


@pytest.mark.parametrize(
    "team, expected",
    [("team1", "u11"), ("team5", "u51"), ("team12", "u121")],
)
def test_author_id_is_first_member_of_team(team, expected):
    assert author_id_for_team(team) == expected


def test_pull_request_id_combines_timestamp_and_suffix():
    # Arrange
    rng = random.Random(7)

    # Act
    pr_id = unique_pull_request_id(rng, clock=lambda: 1700000000.123)

    # Assert
    assert re.fullmatch(r"pr-1700000000123-[a-z0-9]{8}", pr_id)


def test_pull_request_ids_differ_within_the_same_millisecond():
    # Arrange -- frozen clock so only the random suffix can separate ids
    rng = random.Random(42)

    # Act
    ids = {unique_pull_request_id(rng, clock=lambda: 1.0) for _ in range(1000)}

    # Assert
    assert len(ids) == 1000


def test_pull_request_payload_shape():
    payload = pull_request_payload("team3", rng=random.Random(1), clock=lambda: 2.0)

    assert payload["pull_request_name"] == PULL_REQUEST_NAME
    assert payload["author_id"] == "u31"
    assert payload["pull_request_id"].startswith("pr-2000-")


def test_safe_json_returns_empty_dict_for_non_json_body():
    assert safe_json(FakeResponse(502)) == {}


def test_safe_json_ignores_non_object_json():
    assert safe_json(FakeResponse(200, body=[1, 2, 3])) == {}


def test_error_code_reads_service_error_body():
    response = FakeResponse(400, body={"error": {"code": "TEAM_EXISTS", "message": "exists"}})

    assert error_code(response) == "TEAM_EXISTS"


def test_error_code_is_none_without_error_body():
    assert error_code(FakeResponse(500)) is None

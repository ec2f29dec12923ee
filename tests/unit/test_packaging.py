"""
Unit tests for the project metadata in ``pyproject.toml``.
"""

from pathlib import Path

import pytest

pytestmark = pytest.mark.unit

tomllib = pytest.importorskip("tomllib")

PYPROJECT = Path(__file__).resolve().parents[2] / "pyproject.toml"


@pytest.fixture(scope="module")
def project():
    with PYPROJECT.open("rb") as handle:
        return tomllib.load(handle)["project"]


def test_package_description_is_not_the_design_notes(project):
    assert project.get("readme") != "DESIGN.md"
    assert project["description"]


def test_check_thresholds_script_is_declared(project):
    assert project["scripts"]["check-thresholds"] == "loadtest.check_thresholds:main"

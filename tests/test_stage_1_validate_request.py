# tests/test_stage_1_validate_request.py
from __future__ import annotations

import pytest

from _advisor_agent.errors import ValidationError
from _advisor_agent.stage_1_validate_request import validate_review_request
from conftest import PROJECT_ID


def _payload(**overrides):
    payload = {
        "project_id": PROJECT_ID,
        "module_type": "product_documentation",
        "artifact_output": "# PRD\nBuild onboarding.",
    }
    payload.update(overrides)
    return payload


def test_valid_request_is_normalised():
    request = validate_review_request(
        _payload(
            project_id=PROJECT_ID.upper(),
            project_name="  Onboarding  ",
            artifact_type="",
            selected_outputs=["PRD", " ", "User stories"],
        )
    )

    assert request.project_id == PROJECT_ID.upper()
    assert request.project_name == "Onboarding"
    assert request.artifact_type is None
    assert request.selected_outputs == ("PRD", "User stories")
    assert request.artifact_id is None


@pytest.mark.parametrize("project_id", [None, "", "not-a-uuid", "3f2c9a1e5b7d4c8e9f0123456789abcd", 42])
def test_invalid_project_id(project_id):
    with pytest.raises(ValidationError) as exc:
        validate_review_request(_payload(project_id=project_id))
    assert "project_id must be a valid UUID string" in exc.value.details


def test_needs_output_or_id():
    with pytest.raises(ValidationError, match="artifact_output or artifact_id"):
        validate_review_request(_payload(artifact_output="   "))


def test_artifact_id_alone_is_enough_before_io():
    request = validate_review_request(_payload(artifact_output=None, artifact_id="a-1"))
    assert request.artifact_id == "a-1"
    assert request.artifact_output is None


def test_reports_every_problem():
    with pytest.raises(ValidationError) as exc:
        validate_review_request(
            {"project_id": "bad", "selected_outputs": "PRD", "project_name": 5}
        )
    details = exc.value.details
    assert "project_id must be a valid UUID string" in details
    assert "module_type is required" in details
    assert "selected_outputs must be a list of strings" in details
    assert "project_name must be a string" in details
    assert "Provide artifact_output or artifact_id" in details


def test_non_object_body():
    with pytest.raises(ValidationError):
        validate_review_request(["not", "a", "dict"])

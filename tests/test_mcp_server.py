# tests/test_mcp_server.py
from __future__ import annotations

from unittest.mock import patch

import pytest

from _mcp_server import mcp_advisor_server as server
from conftest import COMPLIANT_REVIEW, PROJECT_ID, fake_gemini_client, make_row, read_rows, seed_rows


@pytest.fixture(autouse=True)
def local_env(monkeypatch, store_path):
    monkeypatch.setenv("STORE_MODE", "local")
    monkeypatch.setenv("LOCAL_STORE_PATH", str(store_path))
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")


@pytest.fixture
def seeded(store_path):
    seed_rows(
        store_path,
        [
            make_row("m1", "meeting_intelligence", 0),
            make_row("d1", "product_documentation", 10, output_data="x" * 1000),
            make_row("r1", "pm_advisor_feedback", 20),
            make_row("old", "prioritization", 30, status="archived"),
        ],
    )


def test_review_artifact_tool(store_path, seeded):
    with patch(
        "_advisor_agent.stage_6_gemini_advisor_review.genai.Client",
        return_value=fake_gemini_client(COMPLIANT_REVIEW),
    ):
        result = server.review_artifact(PROJECT_ID, "product_documentation", artifact_id="d1")

    assert result["status_code"] == 200
    assert result["output"] == COMPLIANT_REVIEW.strip()
    assert result["context_artifacts_count"] == 1
    assert len(read_rows(store_path)) == 5


def test_review_artifact_tool_rejects_bad_request(seeded):
    result = server.review_artifact("nope", "product_documentation", artifact_output="text")

    assert result["status_code"] == 400
    assert result["error"] == "Invalid review request"


def test_review_artifact_tool_reports_config_error(monkeypatch):
    monkeypatch.setenv("STORE_MODE", "s3")

    result = server.review_artifact(PROJECT_ID, "product_documentation", artifact_output="text")

    assert result["status_code"] == 500
    assert result["error"] == "Advisor not configured"


def test_list_project_artifacts(seeded):
    result = server.list_project_artifacts(PROJECT_ID)

    assert result["total_matching"] == 2
    assert [r["id"] for r in result["results"]] == ["d1", "m1"]
    assert result["results"][0]["excerpt"].endswith("…")


def test_list_project_artifacts_with_reviews_and_filter(seeded):
    with_reviews = server.list_project_artifacts(PROJECT_ID, include_reviews=True, limit=2)
    assert with_reviews["total_matching"] == 3
    assert [r["id"] for r in with_reviews["results"]] == ["r1", "d1"]

    filtered = server.list_project_artifacts(PROJECT_ID, artifact_type="meeting_intelligence")
    assert [r["id"] for r in filtered["results"]] == ["m1"]


def test_get_artifact(seeded):
    assert server.get_artifact("m1")["artifact"]["id"] == "m1"
    assert server.get_artifact("missing")["found"] is False


def test_archive_artifact(seeded):
    assert server.archive_artifact("m1") == {"archived": True, "artifact_id": "m1"}
    assert server.get_artifact("m1")["artifact"]["status"] == "archived"
    assert server.archive_artifact("missing")["archived"] is False


def test_list_project_artifacts_rejects_bad_project_id(seeded):
    result = server.list_project_artifacts("abc) or (1=1")

    assert result["error"] == "Invalid project_id"
    assert "results" not in result

# tests/conftest.py
"""
Shared fixtures for the advisor pipeline tests.

Nothing here touches the network: the artifact store is a LocalArtifactStore
in tmp_path and the Gemini client is a MagicMock whose generate_content
returns canned responses.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from _advisor_agent.artifact_store_gateway import LocalArtifactStore
from _advisor_agent.config import AdvisorConfig

PROJECT_ID = "3f2c9a1e-5b7d-4c8e-9f01-23456789abcd"
OTHER_PROJECT_ID = "11111111-2222-4333-8444-555555555555"

BASE_TIME = datetime(2025, 1, 18, 9, 0, tzinfo=timezone.utc)

COMPLIANT_REVIEW = """## 1) Scorecard
- Correctness Score: 8/10. Matches the meeting notes (artifact_id: a-1).
- Engineering Actionability Score: 7/10. Tasks are concrete.
- Architecture Grounding Score: 9/10. Uses project_artifacts correctly.

## 2) Executive Verdict
Ship with edits.

## 3) Artifact Summary
A PRD for the onboarding flow.

## 4) Correctness & Completeness Checks
Not verifiable from provided artifacts.

## 5) Architecture & Data Contract Alignment
Aligned.

## 6) Cross-Artifact Consistency
Consistent with the release notes (artifact_id: a-2).

## 7) Engineering Action Plan
| Task | Location | Owner | Priority | Effort | Acceptance Criteria | Verification |
|------|----------|-------|----------|--------|---------------------|--------------|
| Add index | project_artifacts | BE | P1 | S | Query < 50ms | DB Query |

## 8) Recommended Edits
Clarify scope.

## 9) Open Questions
None.
"""

NON_COMPLIANT_REVIEW = "Looks fine overall. Maybe add more detail."


def make_row(
    artifact_id: str,
    artifact_type: str = "meeting_intelligence",
    minutes: int = 0,
    project_id: str = PROJECT_ID,
    status: str = "active",
    output_data: str | None = None,
    artifact_name: str | None = None,
) -> dict:
    """A project_artifacts row created `minutes` after BASE_TIME."""
    return {
        "id": artifact_id,
        "project_id": project_id,
        "project_name": "Onboarding Revamp",
        "artifact_type": artifact_type,
        "artifact_name": artifact_name or f"{artifact_type} {artifact_id}",
        "input_data": {},
        "output_data": output_data if output_data is not None else f"Output of {artifact_id}",
        "metadata": {},
        "advisor_feedback": None,
        "advisor_reviewed_at": None,
        "status": status,
        "created_at": (BASE_TIME + timedelta(minutes=minutes)).isoformat(),
    }


def seed_rows(path, rows) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"artifacts": rows}, f)


def read_rows(path) -> list:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)["artifacts"]


def gemini_response(text: str, prompt_tokens: int = 1200, completion_tokens: int = 800):
    return SimpleNamespace(
        text=text,
        usage_metadata=SimpleNamespace(
            prompt_token_count=prompt_tokens,
            candidates_token_count=completion_tokens,
            total_token_count=prompt_tokens + completion_tokens,
        ),
    )


def fake_gemini_client(*outcomes) -> MagicMock:
    """
    A stand-in for genai.Client.

    Each outcome is either response text (returned as a response object) or
    an exception instance (raised), consumed one per generate_content call.
    """
    client = MagicMock()
    client.models.generate_content.side_effect = [
        o if isinstance(o, BaseException) else gemini_response(o) for o in outcomes
    ]
    return client


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "project_artifacts.json"


@pytest.fixture
def local_store(store_path):
    return LocalArtifactStore(str(store_path))


@pytest.fixture
def config(store_path):
    return AdvisorConfig(
        gemini_api_key="test-key",
        store_mode="local",
        local_store_path=str(store_path),
    )

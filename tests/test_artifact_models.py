# tests/test_artifact_models.py
from __future__ import annotations

from datetime import datetime, timezone

from _advisor_agent.artifact_models import (
    CONTEXT_INELIGIBLE_TYPES,
    Artifact,
    ArtifactStatus,
    ArtifactType,
    ContextIndex,
    ContextIndexEntry,
    PersistenceOutcome,
    ReviewResult,
    parse_timestamp,
)
from conftest import make_row


class TestArtifactType:
    def test_only_review_type_is_context_ineligible(self):
        assert CONTEXT_INELIGIBLE_TYPES == frozenset({ArtifactType.PM_ADVISOR_FEEDBACK})
        for t in ArtifactType:
            assert t.context_eligible == (t is not ArtifactType.PM_ADVISOR_FEEDBACK)

    def test_parse_known_and_unknown_tags(self):
        assert ArtifactType.parse("prioritization") is ArtifactType.PRIORITIZATION
        assert ArtifactType.parse("legacy_notes") == "legacy_notes"
        assert ArtifactType.parse(None) == "unknown"


class TestTimestamps:
    def test_parse_z_suffix(self):
        dt = parse_timestamp("2025-01-18T10:00:00Z")
        assert dt == datetime(2025, 1, 18, 10, 0, tzinfo=timezone.utc)

    def test_naive_is_assumed_utc(self):
        dt = parse_timestamp("2025-01-18T10:00:00")
        assert dt.tzinfo is not None
        assert dt.hour == 10

    def test_garbage_is_none(self):
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp("") is None
        assert parse_timestamp(None) is None


class TestArtifact:
    def test_row_round_trip_keeps_fields(self):
        row = make_row("a-1", "product_documentation", minutes=5)
        artifact = Artifact.from_row(row)

        assert artifact.artifact_type is ArtifactType.PRODUCT_DOCUMENTATION
        assert artifact.status is ArtifactStatus.ACTIVE
        assert artifact.to_row()["created_at"] == row["created_at"]
        assert artifact.to_row()["artifact_type"] == "product_documentation"

    def test_unknown_status_is_never_active(self):
        artifact = Artifact.from_row(make_row("a-1", status="purged"))
        assert artifact.status is ArtifactStatus.DELETED
        assert not artifact.context_eligible

    def test_context_eligibility(self):
        assert Artifact.from_row(make_row("a-1")).context_eligible
        assert not Artifact.from_row(make_row("a-2", status="archived")).context_eligible
        assert not Artifact.from_row(make_row("a-3", "pm_advisor_feedback")).context_eligible
        assert Artifact.from_row(make_row("a-4", "legacy_notes")).context_eligible

    def test_to_candidate_projects_type_as_string(self):
        candidate = Artifact.from_row(make_row("a-1", "release_communications")).to_candidate()
        assert candidate.artifact_type == "release_communications"
        assert candidate.output_data == "Output of a-1"


class TestResults:
    def test_included_refs(self):
        index = ContextIndex(
            text="...",
            entries=(
                ContextIndexEntry("a-1", "prioritization", "P", "2025", "x"),
                ContextIndexEntry("a-2", "prioritization", "Q", "2025", "y"),
            ),
        )
        assert index.included_refs == ["a-1", "a-2"]

    def test_response_body_omits_missing_artifact_id(self):
        result = ReviewResult(output="review", context_artifacts_count=3)
        body = result.to_response_body("v1")

        assert "artifact_id" not in body
        assert body == {"output": "review", "context_artifacts_count": 3, "pipeline_version": "v1"}
        assert not result.persistence.persisted

    def test_persistence_outcome_states(self):
        outcome = PersistenceOutcome(review_artifact_id="r-1", backlink_attempted=True)
        assert outcome.persisted and outcome.backlinked

        outcome = PersistenceOutcome(insert_error="boom", backlink_attempted=True, backlink_error="x")
        assert not outcome.persisted and not outcome.backlinked

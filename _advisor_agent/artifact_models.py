"""
Artifact Models - PM Advisor

PURPOSE:
    Typed records shared by every stage of the advisor review pipeline:

    1. ArtifactType / ArtifactStatus: the enumerated tags stored in the
       project_artifacts table, including the reserved review tag.
    2. Artifact: one persisted work product (a row of project_artifacts).
    3. ContextCandidate / ContextIndexEntry / ContextIndex: the transient,
       read-only projections used while building the grounding context.
    4. ReviewRequest / ReviewOutput / PersistenceOutcome / ReviewResult: the
       inputs and outputs of one pipeline run.

DESIGN DECISIONS:
    - Whether an artifact type may be used as grounding context is a property
      of the type itself (ArtifactType.context_eligible), not a string list
      repeated at call sites. CONTEXT_INELIGIBLE_TYPES is derived from it and
      is the artifact store's default exclusion set, so review output can
      never be fed back in as context for another review.
    - Rows coming back from the store may carry artifact_type strings we do
      not know about (older modules, manual inserts). Those are kept as raw
      strings and treated as context-eligible rather than dropped.
    - Timestamps are always timezone-aware UTC datetimes inside the pipeline
      and ISO-8601 strings on the wire.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union


class ArtifactType(Enum):
    MEETING_INTELLIGENCE = "meeting_intelligence"
    PRODUCT_DOCUMENTATION = "product_documentation"
    RELEASE_COMMUNICATIONS = "release_communications"
    PRIORITIZATION = "prioritization"
    PM_ADVISOR_FEEDBACK = "pm_advisor_feedback"

    @property
    def context_eligible(self) -> bool:
        """Reviews are never grounding context for other reviews."""
        return self is not ArtifactType.PM_ADVISOR_FEEDBACK

    @classmethod
    def parse(cls, value: Optional[str]) -> Union["ArtifactType", str]:
        """Return the enum member for a known tag, or the raw string otherwise."""
        if value is None:
            return "unknown"
        try:
            return cls(value)
        except ValueError:
            return value


REVIEW_ARTIFACT_TYPE = ArtifactType.PM_ADVISOR_FEEDBACK

CONTEXT_INELIGIBLE_TYPES = frozenset(
    t for t in ArtifactType if not t.context_eligible
)


class ArtifactStatus(Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    DELETED = "deleted"


def type_tag(artifact_type: Union[ArtifactType, str, None]) -> str:
    """String form of an artifact type as stored in the table."""
    if isinstance(artifact_type, ArtifactType):
        return artifact_type.value
    return artifact_type or "unknown"


def parse_timestamp(value) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp from the store into an aware UTC datetime.

    PostgREST returns values like "2025-01-18T10:00:00.123456+00:00"; older
    clients write a trailing "Z". Naive values are assumed to be UTC.
    Unparseable values return None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


@dataclass
class Artifact:
    """One row of the project_artifacts table."""

    id: str
    project_id: str
    artifact_type: Union[ArtifactType, str]
    project_name: str = ""
    artifact_name: Optional[str] = None
    input_data: dict = field(default_factory=dict)
    output_data: str = ""
    metadata: dict = field(default_factory=dict)
    advisor_feedback: Optional[str] = None
    advisor_reviewed_at: Optional[datetime] = None
    status: ArtifactStatus = ArtifactStatus.ACTIVE
    created_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status is ArtifactStatus.ACTIVE

    @property
    def context_eligible(self) -> bool:
        if not self.is_active:
            return False
        if isinstance(self.artifact_type, ArtifactType):
            return self.artifact_type.context_eligible
        return True

    @classmethod
    def from_row(cls, row: dict) -> "Artifact":
        try:
            status = ArtifactStatus(row.get("status") or "active")
        except ValueError:
            status = ArtifactStatus.DELETED
        return cls(
            id=str(row.get("id", "")),
            project_id=str(row.get("project_id", "")),
            artifact_type=ArtifactType.parse(row.get("artifact_type")),
            project_name=row.get("project_name") or "",
            artifact_name=row.get("artifact_name"),
            input_data=row.get("input_data") or {},
            output_data=row.get("output_data") or "",
            metadata=row.get("metadata") or {},
            advisor_feedback=row.get("advisor_feedback"),
            advisor_reviewed_at=parse_timestamp(row.get("advisor_reviewed_at")),
            status=status,
            created_at=parse_timestamp(row.get("created_at")),
        )

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "project_name": self.project_name,
            "artifact_type": type_tag(self.artifact_type),
            "artifact_name": self.artifact_name,
            "input_data": self.input_data,
            "output_data": self.output_data,
            "metadata": self.metadata,
            "advisor_feedback": self.advisor_feedback,
            "advisor_reviewed_at": format_timestamp(self.advisor_reviewed_at),
            "status": self.status.value,
            "created_at": format_timestamp(self.created_at),
        }

    def to_candidate(self) -> "ContextCandidate":
        return ContextCandidate(
            id=self.id,
            artifact_type=type_tag(self.artifact_type),
            artifact_name=self.artifact_name,
            created_at=self.created_at,
            output_data=self.output_data,
        )


@dataclass(frozen=True)
class ContextCandidate:
    id: str
    artifact_type: str
    artifact_name: Optional[str]
    created_at: Optional[datetime]
    output_data: str


@dataclass(frozen=True)
class ContextIndexEntry:
    artifact_id: str
    artifact_type: str
    artifact_name: str
    created_at: str
    excerpt: str


@dataclass(frozen=True)
class ContextIndex:
    text: str
    entries: tuple = ()

    @property
    def included_refs(self) -> list:
        return [e.artifact_id for e in self.entries]


@dataclass(frozen=True)
class ReviewRequest:
    project_id: str
    module_type: str
    artifact_output: Optional[str] = None
    artifact_id: Optional[str] = None
    project_name: Optional[str] = None
    artifact_type: Optional[str] = None
    selected_outputs: tuple = ()
    artifact_name: Optional[str] = None


@dataclass
class ReviewOutput:
    """What Stage 6 hands to Stage 7: the review text plus call metadata."""

    text: str
    model: str
    temperature: float
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    compliance_issues: list = field(default_factory=list)
    rewrite_attempted: bool = False

    @property
    def usage(self) -> dict:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class PersistenceOutcome:
    """
    Result of the two best-effort writes in Stage 7.

    A review can succeed while being unpersisted; callers inspect this
    instead of inferring it from a missing artifact_id.
    """

    review_artifact_id: Optional[str] = None
    insert_error: Optional[str] = None
    backlink_attempted: bool = False
    backlink_error: Optional[str] = None

    @property
    def persisted(self) -> bool:
        return self.review_artifact_id is not None

    @property
    def backlinked(self) -> bool:
        return self.backlink_attempted and self.backlink_error is None


@dataclass
class ReviewResult:
    output: str
    context_artifacts_count: int
    persistence: PersistenceOutcome = field(default_factory=PersistenceOutcome)

    @property
    def artifact_id(self) -> Optional[str]:
        return self.persistence.review_artifact_id

    def to_response_body(self, pipeline_version: str) -> dict:
        body = {
            "output": self.output,
            "context_artifacts_count": self.context_artifacts_count,
            "pipeline_version": pipeline_version,
        }
        if self.artifact_id is not None:
            body["artifact_id"] = self.artifact_id
        return body

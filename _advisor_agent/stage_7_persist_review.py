"""
Stage 7: Persist Review & Backlink - PM Advisor

PURPOSE:
    Final stage of the pipeline. Takes the review from Stage 6 and records
    it in the artifact store:

      1. Insert a new artifact tagged pm_advisor_feedback holding the review
         text, what was reviewed, which context artifacts were shown to the
         model (for citation audit), and token/timing metadata.
      2. If the request named the reviewed artifact (artifact_id), write the
         review onto it: advisor_feedback + advisor_reviewed_at.

CALLED BY:
    review_pipeline_main.py: only after Stage 6 succeeded.

DESIGN DECISIONS:
    - Both writes are best-effort. By the time we get here the expensive
      model call has already produced the review, so a storage failure must
      not throw that work away: the caller still gets the review text. The
      failures are logged and recorded in the returned PersistenceOutcome,
      where callers and tests can see "reviewed but unpersisted" directly.
    - The backlink is attempted even when the insert failed, and a failed
      backlink never rolls back the insert. The two writes are independent.
    - Each run inserts a new review row. Re-reviewing the same artifact is
      not idempotent: every review is kept, and the reviewed artifact's
      advisor_feedback reflects whichever backlink write landed last.
      Concurrent reviews of one artifact therefore race on the backlink
      (last write wins); there is no version check.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from . import PIPELINE_VERSION
from .artifact_models import (
    REVIEW_ARTIFACT_TYPE,
    ArtifactStatus,
    PersistenceOutcome,
    format_timestamp,
)
from .errors import ArtifactNotFound, StoreUnavailable


def persist_review(
    store,
    review,
    request,
    context_index,
    duration_ms: int,
    logger: Optional[logging.Logger] = None,
    now: Optional[datetime] = None,
) -> PersistenceOutcome:
    """
    Store the review as a new artifact and backlink the reviewed artifact.

    Args:
        store: ArtifactStore to write to.
        review: ReviewOutput from Stage 6.
        request: ReviewRequest from Stage 1.
        context_index: ContextIndex from Stage 4 (its entries are recorded).
        duration_ms: Wall-clock duration of the run so far.
        logger: Logger for write failures.
        now: Timestamp to use (defaults to the current UTC time).

    Returns:
        PersistenceOutcome describing what was written. Never raises for
        store failures.
    """
    log = logger or logging.getLogger(__name__)
    now = now or datetime.now(timezone.utc)
    outcome = PersistenceOutcome()

    # -----------------------------------------------------------------------
    # WRITE 1: the review artifact
    # -----------------------------------------------------------------------

    fields = _build_review_row(review, request, context_index, duration_ms, now)
    try:
        stored = store.insert(fields)
        outcome.review_artifact_id = stored.id
        log.info("Stored advisor review as artifact %s", stored.id)
    except (StoreUnavailable, ArtifactNotFound) as e:
        outcome.insert_error = e.message
        log.error("Failed to store advisor review: %s", e.message)

    # -----------------------------------------------------------------------
    # WRITE 2: backlink onto the reviewed artifact
    # -----------------------------------------------------------------------

    if request.artifact_id:
        outcome.backlink_attempted = True
        try:
            store.patch(
                request.artifact_id,
                {
                    "advisor_feedback": review.text,
                    "advisor_reviewed_at": format_timestamp(now),
                },
                project_id=request.project_id,
            )
            log.info("Backlinked review onto artifact %s", request.artifact_id)
        except (StoreUnavailable, ArtifactNotFound) as e:
            outcome.backlink_error = e.message
            log.error(
                "Failed to write advisor feedback onto artifact %s: %s",
                request.artifact_id,
                e.message,
            )

    return outcome


def _build_review_row(review, request, context_index, duration_ms: int, now: datetime) -> dict:
    entries = context_index.entries
    module_type = request.module_type or "unknown"
    return {
        "project_id": request.project_id,
        "project_name": request.project_name or "Unknown Project",
        "artifact_type": REVIEW_ARTIFACT_TYPE.value,
        "artifact_name": (
            request.artifact_name
            or f"PM Advisor Review - {module_type} - {now.strftime('%Y-%m-%d')}"
        ),
        "input_data": {
            "reviewed_artifact_id": request.artifact_id,
            "reviewed_artifact_type": request.artifact_type,
            "module_type": request.module_type,
            "selected_outputs": list(request.selected_outputs) or None,
            "context_artifacts_count": len(entries),
            "included_context_artifact_ids": context_index.included_refs,
            "pipeline_version": PIPELINE_VERSION,
        },
        "output_data": review.text,
        "metadata": {
            "category": "pm_review",
            "pipeline_version": PIPELINE_VERSION,
            "module_type": request.module_type,
            "reviewed_artifact_id": request.artifact_id,
            "tokens_used": review.total_tokens,
            "prompt_tokens": review.prompt_tokens,
            "completion_tokens": review.completion_tokens,
            "duration_ms": duration_ms,
            "model": review.model,
            "temperature": review.temperature,
            "rewrite_attempted": review.rewrite_attempted,
            "compliance_issues": list(review.compliance_issues),
            "context_artifacts": [
                {
                    "id": e.artifact_id,
                    "type": e.artifact_type,
                    "name": e.artifact_name,
                    "created_at": e.created_at,
                }
                for e in entries
            ],
        },
        "status": ArtifactStatus.ACTIVE.value,
    }

"""
Stage 2: Select Context - PM Advisor

PURPOSE:
    Pick a bounded, representative subset of the project's other artifacts to
    ground the review. This is "best-of by type" sampling:

      1. Group candidates by artifact_type.
      2. Within each group keep the `per_type` most recent.
      3. Merge the kept groups, newest first.
      4. Cap the result at `max_total`.

    Recency-within-type stops one prolific module (for example, many small
    meeting notes) from crowding out the single latest PRD or prioritization,
    and the global cap bounds prompt size however long the project history
    grows.

CALLED BY:
    review_pipeline_main.py: with the candidates returned by the artifact
    store (already filtered to active, context-eligible rows and with the
    review target removed).

ORDERING:
    Sort key is created_at descending, then id ascending. Equal timestamps
    (bulk imports, demo seeds) therefore always select and order the same
    way. A missing created_at sorts as the oldest possible time.

COST:
    $0, pure Python, no I/O.
"""

from datetime import datetime, timezone

EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def select_context_artifacts(candidates, per_type: int = 2, max_total: int = 12) -> list:
    """
    Select context artifacts as best-of per type, newest first.

    Args:
        candidates: Iterable of ContextCandidate (anything with id,
                    artifact_type and created_at attributes).
        per_type: Maximum number of artifacts kept from any one type.
        max_total: Maximum number of artifacts returned overall.

    Returns:
        List of candidates, sorted by created_at descending (ties by id
        ascending), at most max_total long. Empty input gives [].
    """
    if per_type < 0 or max_total < 0:
        raise ValueError("per_type and max_total must be non-negative")

    grouped = {}
    for candidate in candidates or ():
        key = candidate.artifact_type or "unknown"
        grouped.setdefault(key, []).append(candidate)

    picked = []
    for group in grouped.values():
        picked.extend(_newest_first(group)[:per_type])

    return _newest_first(picked)[:max_total]


def _newest_first(items) -> list:
    # Two stable sorts: id ascending, then created_at descending.
    by_id = sorted(items, key=lambda c: str(c.id))
    return sorted(by_id, key=lambda c: c.created_at or EPOCH, reverse=True)

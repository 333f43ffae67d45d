"""
Stage 4: Build Context Index - PM Advisor

PURPOSE:
    Turn the selected context artifacts into a compact listing the model can
    cite by artifact_id. Every entry has the same fixed shape:

        - artifact_id: <id>
          type: <artifact_type>
          name: <artifact_name>
          created_at: <ISO-8601>
          excerpt: <first ~450 chars of output_data>

    The ids listed here are the only ids the review is allowed to cite.
    ContextIndex.included_refs is persisted with the review (Stage 7) so that
    every citation can be audited against what the model actually saw.

CALLED BY:
    review_pipeline_main.py: with the output of Stage 2.

DESIGN DECISIONS:
    - An empty selection produces EMPTY_INDEX_SENTINEL, never "". The prompt
      tells the model to cite "the index above"; an empty section would make
      that instruction incoherent and is easy to mistake for a bug.
    - Excerpts go through safe_snippet (head only + ellipsis).
"""

from .artifact_models import ContextIndex, ContextIndexEntry, format_timestamp
from .stage_3_compress_text import safe_snippet

EMPTY_INDEX_SENTINEL = "[No other artifacts found for this project]"
DEFAULT_EXCERPT_CHARS = 450


def build_context_index(selected, excerpt_chars: int = DEFAULT_EXCERPT_CHARS) -> ContextIndex:
    """
    Build the citable artifact index for the review prompt.

    Args:
        selected: Sequence of ContextCandidate from Stage 2, in prompt order.
        excerpt_chars: Excerpt bound passed to safe_snippet.

    Returns:
        ContextIndex with the rendered text and one entry per artifact.
    """
    if not selected:
        return ContextIndex(text=EMPTY_INDEX_SENTINEL, entries=())

    entries = tuple(
        ContextIndexEntry(
            artifact_id=candidate.id or "(no id)",
            artifact_type=candidate.artifact_type or "(no type)",
            artifact_name=candidate.artifact_name or "(no name)",
            created_at=format_timestamp(candidate.created_at) or "unknown",
            excerpt=safe_snippet(candidate.output_data, excerpt_chars),
        )
        for candidate in selected
    )

    text = "\n".join(_format_entry(e) for e in entries)
    return ContextIndex(text=text, entries=entries)


def _format_entry(entry: ContextIndexEntry) -> str:
    return (
        f"- artifact_id: {entry.artifact_id}\n"
        f"  type: {entry.artifact_type}\n"
        f"  name: {entry.artifact_name}\n"
        f"  created_at: {entry.created_at}\n"
        f"  excerpt: {entry.excerpt}"
    )

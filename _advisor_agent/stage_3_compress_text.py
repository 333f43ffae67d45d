"""
Stage 3: Compress Text - PM Advisor

PURPOSE:
    Keep the prompt inside its context budget without losing the parts of an
    artifact that carry decisions. Two independent, deterministic modes:

    1. compress_large_artifact: for the artifact under review. Keeps the
       first `head` and last `tail` characters and replaces the middle with a
       marker stating how much was dropped. Introductions carry the framing
       and the end of a PM artifact usually carries conclusions and action
       items, so both survive.
    2. safe_snippet: for context excerpts in the artifact index. Head only,
       followed by an ellipsis. Excerpts only tell the model what an artifact
       is about so it can cite it; they are not evidence on their own.

CALLED BY:
    review_pipeline_main.py (compress_large_artifact on the target text) and
    stage_4_build_context_index.py (safe_snippet on every excerpt).

DESIGN DECISIONS:
    - Both functions are total over text input: None or "" gives "", other
      non-string values are str()-ed. Neither ever raises on its text
      argument, so a malformed row can never break a review.
    - Lengths are counted in characters (Python str), not tokens. The budget
      constants were sized for ~4 characters per token.
    - Compression only kicks in once the text exceeds head + tail + margin.
      Without the margin a text barely over the limit would have a few
      characters cut and a marker longer than what it replaced.
"""

DEFAULT_HEAD_CHARS = 6000
DEFAULT_TAIL_CHARS = 3000
DEFAULT_MARGIN_CHARS = 200
DEFAULT_SNIPPET_CHARS = 600
ELLIPSIS = "…"


def compression_marker(original_length: int, head: int, tail: int) -> str:
    """The gap note inserted between head and tail."""
    omitted = original_length - head - tail
    return (
        f"\n\n[... middle omitted for length: {omitted} of "
        f"{original_length} chars ...]\n\n"
    )


def compress_large_artifact(
    text,
    head: int = DEFAULT_HEAD_CHARS,
    tail: int = DEFAULT_TAIL_CHARS,
    margin: int = DEFAULT_MARGIN_CHARS,
) -> str:
    """
    Shrink over-long text to head + marker + tail.

    Returns the text unchanged when len(text) <= head + tail + margin.
    Otherwise returns text[:head] + compression_marker(...) + text[-tail:].
    """
    t = _as_text(text)
    if len(t) <= head + tail + margin:
        return t

    head_part = t[:head]
    tail_part = t[-tail:] if tail > 0 else ""
    return head_part + compression_marker(len(t), head, tail) + tail_part


def safe_snippet(text, max_chars: int = DEFAULT_SNIPPET_CHARS) -> str:
    """First max_chars characters, plus an ellipsis when something was cut."""
    t = _as_text(text)
    if len(t) <= max_chars:
        return t
    return t[:max_chars] + ELLIPSIS


def _as_text(text) -> str:
    if text is None:
        return ""
    return text if isinstance(text, str) else str(text)

"""
Stage 6: Gemini Advisor Review - PM Advisor

PURPOSE:
    Send the assembled review prompt to Gemini and return the review text
    with its usage metadata. This is the only stage that costs money and the
    only one whose latency matters; everything else is local string work.

CALLED BY:
    review_pipeline_main.py: passes the prompt from Stage 5 and
    ADVISOR_SYSTEM_PROMPT as the system instructions.

EXTERNAL APIS USED:
    - Gemini via the google-genai Python SDK.
    - API key from the GEMINI_API_KEY environment variable / secret.

DESIGN DECISIONS:
    - We use google-genai (the current SDK), not the legacy
      google-generativeai package.
    - temperature=0.2 and a 4500-token output ceiling by default. Reviews
      must be consistent and correct, not creative; the ceiling leaves room
      for all nine sections plus the action-plan table.
    - No automatic retries. A failed or timed-out call raises UpstreamError
      and the run ends with nothing persisted. Whether to retry is the
      caller's decision (the CLI and MCP caller can simply re-run).
    - Compliance gate: the review must contain the nine required headings
      and a markdown table. If the first answer does not, we make exactly
      one rewrite call at temperature 0.1 asking the model to reformat its
      own output. The rewrite is used only if it passes the gate; otherwise
      (or if the rewrite call itself fails) the first answer is kept and the
      problems are recorded in ReviewOutput.compliance_issues. This is a
      format repair, not a retry: the first call failing is always terminal.
    - Provider exceptions are translated into UpstreamError here so the
      orchestrator never has to know about google-genai or httpx types.
"""

import logging
import re
from typing import Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from .artifact_models import ReviewOutput
from .errors import UpstreamError
from .stage_5_build_review_prompt import REQUIRED_SECTIONS, build_rewrite_prompt

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_TEMPERATURE = 0.2
REWRITE_TEMPERATURE = 0.1
DEFAULT_MAX_OUTPUT_TOKENS = 4500
DEFAULT_TIMEOUT_SECONDS = 120

_TABLE_ROW = re.compile(r"\|.+\|.+\|")
_TABLE_SEPARATOR = re.compile(r"\|\s*:?-{2,}:?\s*\|")


def run_gemini_advisor_review(
    prompt: str,
    system_instructions: str,
    api_key: Optional[str] = None,
    client=None,
    model: str = DEFAULT_MODEL,
    temperature: float = DEFAULT_TEMPERATURE,
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    logger: Optional[logging.Logger] = None,
) -> ReviewOutput:
    """
    Run the advisor review call (plus at most one format-repair call).

    Args:
        prompt: The user prompt from Stage 5.
        system_instructions: The advisor system prompt.
        api_key: Gemini API key. Ignored when `client` is given.
        client: An existing genai.Client (tests pass a fake one).
        model: Gemini model name.
        temperature: Decoding temperature for the first call.
        max_output_tokens: Output ceiling for every call.
        timeout_seconds: HTTP timeout applied to the client we create.
        logger: Logger to report progress to.

    Returns:
        ReviewOutput with the review text and summed token usage.

    Raises:
        UpstreamError: the first call failed, timed out, or returned no text.
    """
    log = logger or logging.getLogger(__name__)

    if client is None:
        client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(timeout_seconds * 1000)),
        )

    log.info("Calling %s for advisor review (prompt %d chars)", model, len(prompt))

    first = _generate(client, model, prompt, system_instructions, temperature, max_output_tokens)
    review = ReviewOutput(
        text=first["text"],
        model=model,
        temperature=temperature,
        prompt_tokens=first["prompt_tokens"],
        completion_tokens=first["completion_tokens"],
        total_tokens=first["total_tokens"],
    )
    log.info(
        "Advisor review generated (%d chars, %s tokens)",
        len(review.text),
        review.total_tokens if review.total_tokens is not None else "N/A",
    )

    # -----------------------------------------------------------------------
    # Compliance gate + single rewrite pass
    # -----------------------------------------------------------------------

    issues = check_review_compliance(review.text)
    if not issues:
        return review

    log.warning("Review output is not format-compliant: %s", "; ".join(issues))
    review.rewrite_attempted = True
    rewrite_prompt = build_rewrite_prompt(prompt, review.text, issues)

    try:
        second = _generate(
            client, model, rewrite_prompt, system_instructions,
            REWRITE_TEMPERATURE, max_output_tokens,
        )
    except UpstreamError as e:
        log.warning("Rewrite call failed, keeping original output: %s", e.message)
        review.compliance_issues = issues
        return review

    review.prompt_tokens = _add(review.prompt_tokens, second["prompt_tokens"])
    review.completion_tokens = _add(review.completion_tokens, second["completion_tokens"])
    review.total_tokens = _add(review.total_tokens, second["total_tokens"])

    rewrite_issues = check_review_compliance(second["text"])
    if rewrite_issues:
        log.warning(
            "Rewrite still non-compliant, keeping original output: %s",
            "; ".join(rewrite_issues),
        )
        review.compliance_issues = issues
        return review

    log.info("Rewrite produced a compliant review")
    review.text = second["text"]
    return review


def check_review_compliance(text: str) -> list:
    """
    Return the format problems in a review; an empty list means compliant.

    Checks every required "## N) ..." heading is present and that there is
    at least one markdown table (a pipe row plus a separator row).
    """
    text = text or ""
    problems = [f"Missing heading: {h}" for h in REQUIRED_SECTIONS if h not in text]
    if not (_TABLE_ROW.search(text) and _TABLE_SEPARATOR.search(text)):
        problems.append("Missing markdown table (required in Section 7)")
    return problems


# ---------------------------------------------------------------------------
# PRIVATE HELPER FUNCTIONS
# ---------------------------------------------------------------------------


def _generate(client, model, contents, system_instructions, temperature, max_output_tokens) -> dict:
    """One generate_content call, with provider errors mapped to UpstreamError."""
    config = types.GenerateContentConfig(
        system_instruction=system_instructions,
        temperature=temperature,
        max_output_tokens=max_output_tokens,
    )
    try:
        response = client.models.generate_content(
            model=model,
            contents=contents,
            config=config,
        )
    except genai_errors.APIError as e:
        message = getattr(e, "message", None) or str(e)
        raise UpstreamError(
            f"Gemini API error: {message}",
            reason="upstream_status",
            upstream_status=getattr(e, "code", None),
        )
    except genai_errors.UnknownApiResponseError as e:
        raise UpstreamError(
            f"Gemini returned an unreadable response: {e}", reason="malformed_response"
        )
    except httpx.TimeoutException as e:
        raise UpstreamError(f"Gemini API call timed out: {e}", reason="timeout")
    except httpx.HTTPError as e:
        raise UpstreamError(f"Gemini API transport error: {e}", reason="transport")

    text = (getattr(response, "text", None) or "").strip()
    if not text:
        raise UpstreamError("Gemini returned an empty response", reason="malformed_response")

    usage = getattr(response, "usage_metadata", None)
    return {
        "text": text,
        "prompt_tokens": getattr(usage, "prompt_token_count", None),
        "completion_tokens": getattr(usage, "candidates_token_count", None),
        "total_tokens": getattr(usage, "total_token_count", None),
    }


def _add(a: Optional[int], b: Optional[int]) -> Optional[int]:
    if a is None and b is None:
        return None
    return (a or 0) + (b or 0)

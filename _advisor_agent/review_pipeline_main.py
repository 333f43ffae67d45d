"""
Review Pipeline Main - PM Advisor

PURPOSE:
    Orchestrate one advisor review from raw request to response:

      Validate request -> check configuration -> fetch context candidates
      -> resolve review target -> select context -> compress target
      -> build index -> build prompt -> Gemini review -> persist + backlink
      -> respond

    Every run is independent and sequential. Nothing is cached between runs;
    the store, config, model client and logger are passed in.

CALLED BY:
    - The `advisor-review` CLI (main() below): reads a JSON request from a
      file or stdin and prints the JSON response.
    - _mcp_server/mcp_advisor_server.py (review_artifact tool).

RESPONSES:
    200  {output, artifact_id?, context_artifacts_count, pipeline_version}
    400  ValidationError     : bad request, nothing was read or written
    500  ConfigurationError  : e.g. GEMINI_API_KEY missing
    502  UpstreamError       : the model call failed; nothing persisted
    503  StoreUnavailable    : context fetch failed and the target could
                                only be resolved from the store
    500  anything unexpected : logged with traceback

DESIGN DECISIONS:
    - Strict up front, lenient at the end. Validation and configuration are
      checked before any I/O. Persistence failures after a successful model
      call never turn the response into an error; the response just has no
      artifact_id (ReviewResult.persistence says why).
    - A failed context fetch is not fatal when the caller sent the artifact
      text inline: the review runs with the empty-index sentinel instead of
      context. It is fatal (503) when the target has to be loaded by id.
    - A request artifact_id is checked against the fetched artifacts even
      when the text is inline: it must be an active, non-review artifact of
      the same project, or the request is rejected with 400.
    - The artifact under review is removed from the context candidates, so
      the index only lists *other* artifacts of the project.
"""

import argparse
import json
import logging
import sys
import time
from dataclasses import dataclass, replace
from typing import Optional

from . import PIPELINE_VERSION
from .artifact_models import ReviewResult
from .artifact_store_gateway import build_artifact_store
from .config import configure_logging, load_config
from .errors import (
    AdvisorPipelineError,
    StoreUnavailable,
    UpstreamError,
    ValidationError,
)
from .stage_1_validate_request import validate_review_request
from .stage_2_select_context import select_context_artifacts
from .stage_3_compress_text import compress_large_artifact
from .stage_4_build_context_index import build_context_index
from .stage_5_build_review_prompt import ADVISOR_SYSTEM_PROMPT, build_review_prompt
from .stage_6_gemini_advisor_review import run_gemini_advisor_review
from .stage_7_persist_review import persist_review


@dataclass
class PipelineResponse:
    status_code: int
    body: dict
    result: Optional[ReviewResult] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def run_advisor_review_pipeline(
    payload,
    store,
    config,
    client=None,
    logger: Optional[logging.Logger] = None,
) -> PipelineResponse:
    """
    Run one advisor review and return the response to send back.

    Args:
        payload: Decoded JSON request body.
        store: ArtifactStore to read context from and write the review to.
        config: AdvisorConfig (model settings, selection caps, credential).
        client: Optional genai.Client; created from config when omitted.
        logger: Logger for the run.

    Returns:
        PipelineResponse. Never raises.
    """
    log = logger or logging.getLogger(__name__)
    start = time.monotonic()
    log.info("Received advisor review request (%s)", PIPELINE_VERSION)

    try:
        # -------------------------------------------------------------------
        # STEP 1: Validate + configuration (no I/O)
        # -------------------------------------------------------------------

        request = validate_review_request(payload)
        log.info(
            "Reviewing project=%s module=%s artifact_id=%s inline_chars=%d",
            request.project_id,
            request.module_type,
            request.artifact_id,
            len(request.artifact_output or ""),
        )
        api_key = config.require_model_credential()

        # -------------------------------------------------------------------
        # STEP 2: Fetch candidates and resolve what to review
        # -------------------------------------------------------------------

        artifacts, fetch_error = _fetch_context(store, request.project_id, log)
        request, target_text = _resolve_target(request, artifacts, fetch_error, log)

        # -------------------------------------------------------------------
        # STEP 3: Select, compress, index, prompt
        # -------------------------------------------------------------------

        candidates = [a.to_candidate() for a in artifacts if a.id != request.artifact_id]
        selected = select_context_artifacts(
            candidates,
            per_type=config.context_per_type,
            max_total=config.context_max_total,
        )
        context_index = build_context_index(selected)
        prompt = build_review_prompt(
            compress_large_artifact(target_text), request, context_index.text
        )
        log.info(
            "Selected %d of %d context artifacts; prompt is %d chars",
            len(selected),
            len(candidates),
            len(prompt),
        )

        # -------------------------------------------------------------------
        # STEP 4: Model call
        # -------------------------------------------------------------------

        review = run_gemini_advisor_review(
            prompt,
            ADVISOR_SYSTEM_PROMPT,
            api_key=api_key,
            client=client,
            model=config.model,
            temperature=config.temperature,
            max_output_tokens=config.max_output_tokens,
            timeout_seconds=config.timeout_seconds,
            logger=log,
        )

        # -------------------------------------------------------------------
        # STEP 5: Persist + backlink (best-effort)
        # -------------------------------------------------------------------

        duration_ms = int((time.monotonic() - start) * 1000)
        outcome = persist_review(store, review, request, context_index, duration_ms, logger=log)

        result = ReviewResult(
            output=review.text,
            context_artifacts_count=len(selected),
            persistence=outcome,
        )
        log.info(
            "Advisor review done in %dms (persisted=%s, backlinked=%s)",
            int((time.monotonic() - start) * 1000),
            outcome.persisted,
            outcome.backlinked,
        )
        return PipelineResponse(200, result.to_response_body(PIPELINE_VERSION), result)

    except AdvisorPipelineError as e:
        return _error_response(e, log)
    except Exception as e:
        log.exception("Unexpected error in advisor review pipeline")
        return PipelineResponse(
            500,
            {
                "error": "Unexpected error",
                "details": str(e),
                "pipeline_version": PIPELINE_VERSION,
            },
        )


# ---------------------------------------------------------------------------
# PRIVATE HELPER FUNCTIONS
# ---------------------------------------------------------------------------


def _fetch_context(store, project_id: str, log: logging.Logger) -> tuple:
    """Active, context-eligible artifacts of the project, or ([], error)."""
    try:
        artifacts = store.list_active(project_id)
    except StoreUnavailable as e:
        log.warning("Context fetch failed, continuing without context: %s", e.message)
        return [], e
    log.info("Fetched %d candidate artifacts", len(artifacts))
    return artifacts, None


def _resolve_target(request, artifacts, fetch_error, log: logging.Logger) -> tuple:
    """
    Return (request, text to review).

    An artifact_id must name an active, context-eligible artifact of the
    request's project even when the text is sent inline, since Stage 7
    writes the review back onto it. If the context fetch failed, an inline
    review still runs but with artifact_id cleared, so nothing is written
    onto an artifact we could not check.
    """
    if request.artifact_id is None:
        return request, request.artifact_output

    if fetch_error is not None:
        if request.artifact_output:
            log.warning(
                "Could not verify artifact %s, reviewing inline text without a backlink",
                request.artifact_id,
            )
            return replace(request, artifact_id=None), request.artifact_output
        raise StoreUnavailable(
            f"Could not load artifact {request.artifact_id}: {fetch_error.message}",
            http_status=fetch_error.http_status,
        )

    target = next(
        (
            a for a in artifacts
            if a.id == request.artifact_id
            and a.project_id.lower() == request.project_id.lower()
            and a.context_eligible
        ),
        None,
    )
    if target is None:
        raise ValidationError(
            "No artifact to review",
            [
                f"artifact_id {request.artifact_id} is not an active, reviewable "
                "artifact in this project"
            ],
        )

    if request.artifact_output:
        return request, request.artifact_output
    if not target.output_data.strip():
        raise ValidationError(
            "No artifact to review",
            [
                f"artifact_id {request.artifact_id} has no content; "
                "provide artifact_output instead"
            ],
        )
    return request, target.output_data


def _error_response(error: AdvisorPipelineError, log: logging.Logger) -> PipelineResponse:
    body = {"error": error.label, "pipeline_version": PIPELINE_VERSION}
    if isinstance(error, ValidationError):
        log.warning("Rejected review request: %s", "; ".join(error.details))
        body["details"] = error.details
    elif isinstance(error, UpstreamError):
        log.error("Model call failed (%s): %s", error.reason, error.message)
        body["details"] = error.message
        body["reason"] = error.reason
    else:
        log.error("%s: %s", error.label, error.message)
        body["details"] = error.message
    return PipelineResponse(error.status_code, body)


# ---------------------------------------------------------------------------
# CLI ENTRY POINT
# ---------------------------------------------------------------------------


def main(argv=None) -> int:
    """
    advisor-review [REQUEST_JSON] [--log-level LEVEL]

    Reads the review request (a JSON object) from REQUEST_JSON or stdin,
    runs the pipeline against the configured store, and prints the JSON
    response on stdout. Exit status 0 on success, 1 otherwise.
    """
    parser = argparse.ArgumentParser(
        prog="advisor-review",
        description="Review a project artifact with the PM advisor.",
    )
    parser.add_argument(
        "request",
        nargs="?",
        help="Path to a JSON request file (reads stdin when omitted)",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args(argv)

    response = _run_cli(args)
    print(json.dumps(response.body, indent=2))
    return 0 if response.ok else 1


def _run_cli(args) -> PipelineResponse:
    log = logging.getLogger("advisor_review")
    try:
        config = load_config()
    except AdvisorPipelineError as e:
        configure_logging(args.log_level or "INFO")
        return _error_response(e, log)
    configure_logging(args.log_level or config.log_level)

    try:
        if args.request:
            with open(args.request, "r", encoding="utf-8") as f:
                payload = json.load(f)
        else:
            payload = json.load(sys.stdin)
    except (OSError, json.JSONDecodeError) as e:
        return _error_response(
            ValidationError("Invalid request body", [f"Could not read request JSON: {e}"]),
            log,
        )

    try:
        store = build_artifact_store(config, logger=log)
    except AdvisorPipelineError as e:
        return _error_response(e, log)

    return run_advisor_review_pipeline(payload, store, config, logger=log)


if __name__ == "__main__":
    sys.exit(main())

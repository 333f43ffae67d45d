"""
MCP Server - PM Advisor

PURPOSE:
    The interface for AI agents (and agent-driven IDEs) to the advisor
    review pipeline. Agents connect via MCP (Model Context Protocol) and get
    structured access to:

    1. review_artifact: Run an advisor review on an artifact (inline text
       or an artifact_id) and store the result.
    2. list_project_artifacts: List a project's active artifacts, newest
       first, optionally including past advisor reviews.
    3. get_artifact: Get one artifact, including its advisor_feedback.
    4. archive_artifact: Flip an artifact's status to 'archived' so it stops
       being used as review context.

    The server reads and writes through the same ArtifactStore as the CLI.
    It can run in two modes (STORE_MODE):
    - local: a JSON file on disk (LOCAL_STORE_PATH), for development
    - remote: Supabase project_artifacts (SUPABASE_URL + service-role key)

ARCHITECTURE:
    Uses the official MCP Python SDK (mcp package) with stdio transport.
    Tools are registered with the @mcp.tool() decorator and return plain
    dicts that agents can consume directly.

INSTALLATION:
    pip install -e .

    Then add to your MCP client config:
    {
      "mcpServers": {
        "pm-advisor": {
          "command": "advisor-mcp",
          "env": {
            "STORE_MODE": "remote",
            "SUPABASE_URL": "https://<project>.supabase.co",
            "SUPABASE_SERVICE_ROLE_KEY": "...",
            "GEMINI_API_KEY": "..."
          }
        }
      }
    }
"""

import logging
from typing import Optional

from mcp.server.fastmcp import FastMCP

from _advisor_agent.artifact_models import type_tag
from _advisor_agent.artifact_store_gateway import build_artifact_store
from _advisor_agent.config import configure_logging, load_config
from _advisor_agent.errors import AdvisorPipelineError, ArtifactNotFound
from _advisor_agent.review_pipeline_main import run_advisor_review_pipeline
from _advisor_agent.stage_1_validate_request import UUID_PATTERN
from _advisor_agent.stage_2_select_context import EPOCH
from _advisor_agent.stage_3_compress_text import safe_snippet

logger = logging.getLogger("advisor_mcp")

# -----------------------------------------------------------------------
# STORE / CONFIG HELPERS
# -----------------------------------------------------------------------
# Config is re-read per tool call so a long-running server picks up
# rotated secrets without a restart.
# -----------------------------------------------------------------------


def _get_config():
    return load_config()


def _get_store(config):
    return build_artifact_store(config, logger=logger)


def _summarize(artifact, excerpt_chars: int = 300) -> dict:
    return {
        "id": artifact.id,
        "artifact_type": type_tag(artifact.artifact_type),
        "artifact_name": artifact.artifact_name,
        "created_at": artifact.to_row()["created_at"],
        "has_advisor_feedback": artifact.advisor_feedback is not None,
        "excerpt": safe_snippet(artifact.output_data, excerpt_chars),
    }


# -----------------------------------------------------------------------
# MCP SERVER DEFINITION
# -----------------------------------------------------------------------

mcp = FastMCP("PM Advisor")


@mcp.tool()
def review_artifact(
    project_id: str,
    module_type: str,
    artifact_output: str = "",
    artifact_id: str = "",
    project_name: str = "",
    artifact_type: str = "",
    selected_outputs: Optional[list] = None,
    artifact_name: str = "",
) -> dict:
    """
    Review a project artifact with the PM advisor and store the review.

    The review is grounded in the project's other active artifacts and
    cites them by artifact_id. Returns the review text, the id of the stored
    review artifact (absent if storing failed), and how many context
    artifacts were used.

    Args:
        project_id: Project UUID.
        module_type: Module that produced the artifact (e.g. 'product_documentation').
        artifact_output: The artifact text to review. Optional if artifact_id is given.
        artifact_id: Id of a stored artifact to review (its feedback fields are updated).
        project_name: Optional project display name.
        artifact_type: Optional declared artifact type label.
        selected_outputs: Optional list of outputs to emphasise in the review.
        artifact_name: Optional name for the stored review artifact.
    """
    payload = {
        "project_id": project_id,
        "module_type": module_type,
        "artifact_output": artifact_output or None,
        "artifact_id": artifact_id or None,
        "project_name": project_name or None,
        "artifact_type": artifact_type or None,
        "selected_outputs": selected_outputs,
        "artifact_name": artifact_name or None,
    }
    try:
        config = _get_config()
        store = _get_store(config)
    except AdvisorPipelineError as e:
        return {"status_code": e.status_code, "error": e.label, "details": e.message}

    response = run_advisor_review_pipeline(payload, store, config, logger=logger)
    return {"status_code": response.status_code, **response.body}


@mcp.tool()
def list_project_artifacts(
    project_id: str,
    artifact_type: str = "",
    include_reviews: bool = False,
    limit: int = 20,
) -> dict:
    """
    List a project's active artifacts, newest first.

    Args:
        project_id: Project UUID.
        artifact_type: Optional filter on artifact_type.
        include_reviews: Also list stored advisor reviews (pm_advisor_feedback).
        limit: Maximum number of results (1-100). Default: 20.
    """
    project_id = project_id.strip()
    if not UUID_PATTERN.match(project_id):
        return {"error": "Invalid project_id", "details": "project_id must be a valid UUID string"}

    try:
        config = _get_config()
        store = _get_store(config)
        artifacts = store.list_active(project_id)
        if include_reviews:
            artifacts = artifacts + store.list_reviews(project_id)
    except AdvisorPipelineError as e:
        return {"error": e.label, "details": e.message}

    if artifact_type:
        artifacts = [a for a in artifacts if type_tag(a.artifact_type) == artifact_type]

    artifacts.sort(key=lambda a: a.created_at or EPOCH, reverse=True)
    limit = min(max(1, limit), 100)
    return {
        "total_matching": len(artifacts),
        "results": [_summarize(a) for a in artifacts[:limit]],
    }


@mcp.tool()
def get_artifact(artifact_id: str) -> dict:
    """
    Get one artifact with its full output and advisor feedback.

    Args:
        artifact_id: The artifact id.
    """
    try:
        config = _get_config()
        artifact = _get_store(config).get(artifact_id)
    except AdvisorPipelineError as e:
        return {"found": False, "error": e.label, "details": e.message}

    if artifact is None:
        return {"found": False, "error": f"No artifact found with id: {artifact_id}"}

    return {"found": True, "artifact": artifact.to_row()}


@mcp.tool()
def archive_artifact(artifact_id: str) -> dict:
    """
    Archive an artifact so it is no longer used as review context.

    Args:
        artifact_id: The artifact id.
    """
    try:
        config = _get_config()
        _get_store(config).archive(artifact_id)
    except ArtifactNotFound:
        return {"archived": False, "error": f"No artifact found with id: {artifact_id}"}
    except AdvisorPipelineError as e:
        return {"archived": False, "error": e.label, "details": e.message}
    return {"archived": True, "artifact_id": artifact_id}


# -----------------------------------------------------------------------
# ENTRY POINT
# -----------------------------------------------------------------------
# Run the server via stdio transport. Agents connect by launching this
# process (configured in their MCP client config).
# -----------------------------------------------------------------------


def main():
    configure_logging(load_config().log_level)
    mcp.run()


if __name__ == "__main__":
    main()

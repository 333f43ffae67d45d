"""
Stage 1: Validate Request - PM Advisor

PURPOSE:
    First stage of the advisor review pipeline. Takes the raw inbound request
    (a JSON object from the CLI, the MCP tool, or an HTTP caller) and turns it
    into a typed ReviewRequest, or rejects it.

    This stage is the cheap gatekeeper: if the request fails here we never
    touch the artifact store or the model. All checks are pure Python.

CALLED BY:
    review_pipeline_main.py: before the configuration check and before the
    context fetch.

CHECKS:
    - project_id is present and UUID-shaped (8-4-4-4-12 hex). It is the
      tenant key of the store, so a malformed value is always a client bug.
    - module_type is a non-empty string.
    - At least one of artifact_output / artifact_id is present. Whether an
      artifact_id actually resolves to text can only be known after the
      context fetch; review_pipeline_main.py checks that.
    - Optional fields, when present, have the right shape (strings, and a
      list of strings for selected_outputs).

RETURNS:
    A ReviewRequest. Raises ValidationError listing every problem found, not
    just the first, so callers can fix a request in one round trip.
"""

import re

from .artifact_models import ReviewRequest
from .errors import ValidationError

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

OPTIONAL_TEXT_FIELDS = ("project_name", "artifact_type", "artifact_name", "artifact_id")


def validate_review_request(payload) -> ReviewRequest:
    """
    Validate an inbound review request and build a ReviewRequest.

    Args:
        payload: The decoded JSON request body. Expected keys: project_id,
                 module_type, artifact_output and/or artifact_id, and the
                 optional project_name, artifact_type, selected_outputs,
                 artifact_name.

    Returns:
        ReviewRequest with blank optional strings normalised to None.

    Raises:
        ValidationError: with one entry in .details per problem.
    """
    if not isinstance(payload, dict):
        raise ValidationError(
            "Invalid request body",
            ["Request body must be a JSON object"],
        )

    errors = []

    # -----------------------------------------------------------------------
    # project_id: tenant key, must be a UUID
    # -----------------------------------------------------------------------

    project_id = payload.get("project_id")
    if not isinstance(project_id, str) or not UUID_PATTERN.match(project_id.strip()):
        errors.append("project_id must be a valid UUID string")
        project_id = None
    else:
        project_id = project_id.strip()

    # -----------------------------------------------------------------------
    # module_type: which module produced the artifact under review
    # -----------------------------------------------------------------------

    module_type = payload.get("module_type")
    if not isinstance(module_type, str) or not module_type.strip():
        errors.append("module_type is required")
        module_type = None
    else:
        module_type = module_type.strip()

    # -----------------------------------------------------------------------
    # Optional text fields
    # -----------------------------------------------------------------------

    optional = {}
    for name in OPTIONAL_TEXT_FIELDS:
        value = payload.get(name)
        if value is None:
            optional[name] = None
        elif not isinstance(value, str):
            errors.append(f"{name} must be a string")
            optional[name] = None
        else:
            optional[name] = value.strip() or None

    artifact_output = payload.get("artifact_output")
    if artifact_output is not None and not isinstance(artifact_output, str):
        errors.append("artifact_output must be a string")
        artifact_output = None
    if artifact_output is not None and not artifact_output.strip():
        artifact_output = None

    selected_outputs = payload.get("selected_outputs")
    if selected_outputs is None:
        selected_outputs = ()
    elif not isinstance(selected_outputs, list) or not all(
        isinstance(o, str) for o in selected_outputs
    ):
        errors.append("selected_outputs must be a list of strings")
        selected_outputs = ()
    else:
        selected_outputs = tuple(o.strip() for o in selected_outputs if o.strip())

    # -----------------------------------------------------------------------
    # Something to review
    # -----------------------------------------------------------------------

    if artifact_output is None and optional["artifact_id"] is None:
        errors.append("Provide artifact_output or artifact_id")

    if errors:
        raise ValidationError(errors[0], errors)

    return ReviewRequest(
        project_id=project_id,
        module_type=module_type,
        artifact_output=artifact_output,
        artifact_id=optional["artifact_id"],
        project_name=optional["project_name"],
        artifact_type=optional["artifact_type"],
        selected_outputs=selected_outputs,
        artifact_name=optional["artifact_name"],
    )

"""
Error taxonomy for the advisor review pipeline.

ValidationError and ConfigurationError are raised before any store or model
I/O. UpstreamError ends a run after the model call fails. StoreUnavailable
comes out of the artifact store gateway; Stage 7 catches it and records it in
a PersistenceOutcome instead of failing the response.
"""

from typing import Optional


class AdvisorPipelineError(Exception):
    """Base class for every error the pipeline maps to a response."""

    status_code = 500
    label = "Advisor pipeline error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AdvisorPipelineError):
    status_code = 400
    label = "Invalid review request"

    def __init__(self, message: str, details: Optional[list] = None):
        super().__init__(message)
        self.details = list(details or [message])


class ConfigurationError(AdvisorPipelineError):
    status_code = 500
    label = "Advisor not configured"


class UpstreamError(AdvisorPipelineError):
    status_code = 502
    label = "Model call failed"

    def __init__(
        self,
        message: str,
        reason: str = "upstream_status",
        upstream_status: Optional[int] = None,
    ):
        super().__init__(message)
        self.reason = reason
        self.upstream_status = upstream_status


class StoreUnavailable(AdvisorPipelineError):
    status_code = 503
    label = "Artifact store unavailable"

    def __init__(self, message: str, http_status: Optional[int] = None):
        super().__init__(message)
        self.http_status = http_status


class ArtifactNotFound(AdvisorPipelineError):
    status_code = 404
    label = "Artifact not found"

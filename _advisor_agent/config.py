"""
Configuration - PM Advisor

PURPOSE:
    Read every runtime setting the pipeline needs from environment variables
    into one frozen AdvisorConfig, and install the process-wide log handler.

    Locally these come from the shell; in deployment they are injected as
    secrets (GEMINI_API_KEY, SUPABASE_SERVICE_ROLE_KEY) and plain env vars.

CALLED BY:
    review_pipeline_main.py (CLI) and _mcp_server/mcp_advisor_server.py.
    The pipeline stages themselves never read the environment; they receive
    explicit arguments so that tests can run without any env setup.

ENVIRONMENT:
    GEMINI_API_KEY             Model credential. Checked when a review runs,
                               not at load time, so read-only tools work
                               without it.
    ADVISOR_MODEL              Default "gemini-2.5-flash".
    ADVISOR_TEMPERATURE        Default 0.2, at most 0.5.
    ADVISOR_MAX_OUTPUT_TOKENS  Default 4500.
    ADVISOR_TIMEOUT_SECONDS    Default 120.
    ADVISOR_CONTEXT_PER_TYPE   Default 2.
    ADVISOR_CONTEXT_MAX_TOTAL  Default 12.
    STORE_MODE                 "local" (JSON file) or "remote" (Supabase).
    LOCAL_STORE_PATH           Default "./project_artifacts.json".
    SUPABASE_URL               Required in remote mode.
    SUPABASE_SERVICE_ROLE_KEY  Required in remote mode.
    LOG_LEVEL                  Default "INFO".
"""

import logging
import os
import sys
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ConfigurationError

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Upper bound for ADVISOR_TEMPERATURE.
MAX_TEMPERATURE = 0.5


@dataclass(frozen=True)
class AdvisorConfig:
    gemini_api_key: Optional[str] = None
    model: str = "gemini-2.5-flash"
    temperature: float = 0.2
    max_output_tokens: int = 4500
    timeout_seconds: float = 120.0
    context_per_type: int = 2
    context_max_total: int = 12
    store_mode: str = "local"
    local_store_path: str = "./project_artifacts.json"
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    log_level: str = "INFO"

    def require_model_credential(self) -> str:
        if not self.gemini_api_key:
            raise ConfigurationError(
                "GEMINI_API_KEY is not set. Export it in the environment "
                "(or add it to the deployment secrets) before running a review."
            )
        return self.gemini_api_key


def load_config(environ: Optional[Mapping[str, str]] = None) -> AdvisorConfig:
    """Build an AdvisorConfig from the environment (or a supplied mapping)."""
    env = os.environ if environ is None else environ

    store_mode = env.get("STORE_MODE", "local").strip().lower()
    if store_mode not in ("local", "remote"):
        raise ConfigurationError(
            f"STORE_MODE must be 'local' or 'remote', got '{store_mode}'"
        )

    temperature = _number(env, "ADVISOR_TEMPERATURE", 0.2, float)
    if temperature > MAX_TEMPERATURE:
        raise ConfigurationError(
            f"ADVISOR_TEMPERATURE must be at most {MAX_TEMPERATURE}, got {temperature}"
        )

    return AdvisorConfig(
        gemini_api_key=env.get("GEMINI_API_KEY") or None,
        model=env.get("ADVISOR_MODEL", "gemini-2.5-flash"),
        temperature=temperature,
        max_output_tokens=_number(env, "ADVISOR_MAX_OUTPUT_TOKENS", 4500, int),
        timeout_seconds=_number(env, "ADVISOR_TIMEOUT_SECONDS", 120.0, float),
        context_per_type=_number(env, "ADVISOR_CONTEXT_PER_TYPE", 2, int),
        context_max_total=_number(env, "ADVISOR_CONTEXT_MAX_TOTAL", 12, int),
        store_mode=store_mode,
        local_store_path=env.get("LOCAL_STORE_PATH", "./project_artifacts.json"),
        supabase_url=env.get("SUPABASE_URL") or None,
        supabase_service_role_key=env.get("SUPABASE_SERVICE_ROLE_KEY") or None,
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    """
    Install a single stderr handler on the root logger.

    stdout is reserved for the CLI's JSON response and the MCP stdio
    transport, so logs always go to stderr.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


def _number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'")
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative, got '{raw}'")
    return value

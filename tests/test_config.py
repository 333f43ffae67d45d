# tests/test_config.py
from __future__ import annotations

import pytest

from _advisor_agent.artifact_store_gateway import (
    LocalArtifactStore,
    SupabaseArtifactStore,
    build_artifact_store,
)
from _advisor_agent.config import AdvisorConfig, load_config
from _advisor_agent.errors import ConfigurationError


def test_defaults_from_empty_environment():
    config = load_config({})

    assert config.gemini_api_key is None
    assert config.model == "gemini-2.5-flash"
    assert config.temperature == 0.2
    assert config.max_output_tokens == 4500
    assert config.context_per_type == 2
    assert config.context_max_total == 12
    assert config.store_mode == "local"


def test_overrides():
    config = load_config(
        {
            "GEMINI_API_KEY": "k",
            "ADVISOR_MODEL": "gemini-2.5-pro",
            "ADVISOR_TEMPERATURE": "0.1",
            "ADVISOR_CONTEXT_MAX_TOTAL": "6",
            "STORE_MODE": "REMOTE",
            "SUPABASE_URL": "https://x.supabase.co",
            "SUPABASE_SERVICE_ROLE_KEY": "srk",
            "LOG_LEVEL": "debug",
        }
    )

    assert config.gemini_api_key == "k"
    assert config.model == "gemini-2.5-pro"
    assert config.temperature == 0.1
    assert config.context_max_total == 6
    assert config.store_mode == "remote"
    assert config.log_level == "DEBUG"


@pytest.mark.parametrize(
    "env",
    [
        {"ADVISOR_MAX_OUTPUT_TOKENS": "lots"},
        {"ADVISOR_CONTEXT_PER_TYPE": "-1"},
        {"STORE_MODE": "s3"},
        {"ADVISOR_TEMPERATURE": "1.5"},
    ],
)
def test_invalid_values_raise(env):
    with pytest.raises(ConfigurationError):
        load_config(env)


def test_missing_credential_is_configuration_error():
    with pytest.raises(ConfigurationError, match="GEMINI_API_KEY"):
        AdvisorConfig().require_model_credential()
    assert AdvisorConfig(gemini_api_key="k").require_model_credential() == "k"


def test_build_store_by_mode(tmp_path):
    local = build_artifact_store(AdvisorConfig(local_store_path=str(tmp_path / "s.json")))
    assert isinstance(local, LocalArtifactStore)

    remote = build_artifact_store(
        AdvisorConfig(store_mode="remote", supabase_url="https://x.supabase.co/", supabase_service_role_key="k")
    )
    assert isinstance(remote, SupabaseArtifactStore)
    assert remote.base_url == "https://x.supabase.co/rest/v1/project_artifacts"

    with pytest.raises(ConfigurationError, match="SUPABASE_URL"):
        build_artifact_store(AdvisorConfig(store_mode="remote"))


def test_temperature_upper_bound_is_inclusive():
    assert load_config({"ADVISOR_TEMPERATURE": "0.5"}).temperature == 0.5

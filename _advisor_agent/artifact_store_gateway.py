"""
Artifact Store Gateway - PM Advisor

PURPOSE:
    Read/write access to the project-scoped artifact repository (the
    project_artifacts table). The pipeline only ever talks to the store
    through the ArtifactStore interface below, so the same stages run
    against production Supabase and against a local JSON file.

    Operations the pipeline consumes:
      - list_active(project_id, exclude_types): context candidates, newest first
      - insert(fields): store a new artifact (the review), returns it with an id
      - patch(artifact_id, fields, project_id): set advisor_feedback /
        advisor_reviewed_at on an artifact of that project only

    Extra operations used by the MCP server:
      - get(artifact_id): fetch one artifact for display
      - archive(artifact_id): flip status to 'archived'
      - list_reviews(project_id): stored advisor reviews of a project

IMPLEMENTATIONS:
    - SupabaseArtifactStore: PostgREST over HTTPS with the service-role key.
      Thin wrapper in the same shape as a REST API helper class: one method
      per endpoint, requests + raise on non-2xx.
    - LocalArtifactStore: a JSON file on disk ({"artifacts": [...]}). Used
      for development and by the test-suite.

DESIGN DECISIONS:
    - The reserved review type is excluded from list_active by construction:
      whatever exclude_types the caller passes is unioned with
      CONTEXT_INELIGIBLE_TYPES. A caller cannot accidentally ask for reviews
      as context.
    - Every transport/auth failure is translated into StoreUnavailable here.
      Callers never see requests exceptions.
    - patch() only accepts the fields an artifact is allowed to change after
      creation (advisor feedback and status). Anything else is a programming
      error and raises ValueError.
"""

import json
import logging
import os
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Iterable, Optional

import requests

from .artifact_models import (
    CONTEXT_INELIGIBLE_TYPES,
    REVIEW_ARTIFACT_TYPE,
    Artifact,
    ArtifactStatus,
    format_timestamp,
    type_tag,
)
from .errors import ArtifactNotFound, ConfigurationError, StoreUnavailable

PATCHABLE_FIELDS = frozenset({"advisor_feedback", "advisor_reviewed_at", "status"})

TABLE_NAME = "project_artifacts"


class ArtifactStore(ABC):
    """Interface shared by every artifact store backend."""

    @abstractmethod
    def list_active(
        self, project_id: str, exclude_types: Iterable = ()
    ) -> list:
        ...

    @abstractmethod
    def list_reviews(self, project_id: str) -> list:
        ...

    @abstractmethod
    def get(self, artifact_id: str) -> Optional[Artifact]:
        ...

    @abstractmethod
    def insert(self, fields: dict) -> Artifact:
        ...

    @abstractmethod
    def patch(
        self, artifact_id: str, fields: dict, project_id: Optional[str] = None
    ) -> None:
        """
        Update the mutable fields of one artifact.

        With project_id set, only an artifact of that project matches, so a
        review can never write onto another tenant's row.
        """

    def archive(self, artifact_id: str) -> None:
        self.patch(artifact_id, {"status": ArtifactStatus.ARCHIVED.value})


def excluded_type_tags(exclude_types: Iterable = ()) -> list:
    """Caller exclusions plus the always-excluded review type, as sorted strings."""
    tags = {type_tag(t) for t in CONTEXT_INELIGIBLE_TYPES}
    tags.update(type_tag(t) for t in exclude_types)
    return sorted(tags)


def _check_patch_fields(fields: dict) -> None:
    unknown = set(fields) - PATCHABLE_FIELDS
    if unknown:
        raise ValueError(
            f"Artifacts are immutable except for {sorted(PATCHABLE_FIELDS)}; "
            f"refusing to patch {sorted(unknown)}"
        )


# ---------------------------------------------------------------------------
# SUPABASE (POSTGREST) BACKEND
# ---------------------------------------------------------------------------


class SupabaseArtifactStore(ArtifactStore):
    """
    project_artifacts over the Supabase REST API.

    The service-role key bypasses row-level security, which is what the
    server-side pipeline needs: it reads every active artifact of a project
    and writes reviews back.
    """

    def __init__(
        self,
        supabase_url: str,
        service_role_key: str,
        timeout: float = 30,
        logger: Optional[logging.Logger] = None,
    ):
        self.base_url = f"{supabase_url.rstrip('/')}/rest/v1/{TABLE_NAME}"
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self.headers = {
            "apikey": service_role_key,
            "Authorization": f"Bearer {service_role_key}",
            "Content-Type": "application/json",
        }

    def list_active(self, project_id: str, exclude_types: Iterable = ()) -> list:
        """Active, context-eligible artifacts of one project, newest first."""
        params = {
            "select": "*",
            "project_id": f"eq.{project_id}",
            "status": f"eq.{ArtifactStatus.ACTIVE.value}",
            "artifact_type": f"not.in.({','.join(excluded_type_tags(exclude_types))})",
            "order": "created_at.desc",
        }
        rows = self._request("get", params=params)
        self.logger.debug("Fetched %d active artifacts for project %s", len(rows), project_id)
        return [Artifact.from_row(row) for row in rows]

    def list_reviews(self, project_id: str) -> list:
        """Active advisor reviews of one project, newest first."""
        params = {
            "select": "*",
            "project_id": f"eq.{project_id}",
            "status": f"eq.{ArtifactStatus.ACTIVE.value}",
            "artifact_type": f"eq.{REVIEW_ARTIFACT_TYPE.value}",
            "order": "created_at.desc",
        }
        return [Artifact.from_row(row) for row in self._request("get", params=params)]

    def get(self, artifact_id: str) -> Optional[Artifact]:
        rows = self._request("get", params={"select": "*", "id": f"eq.{artifact_id}"})
        return Artifact.from_row(rows[0]) if rows else None

    def insert(self, fields: dict) -> Artifact:
        """Insert one row and return it as stored (with generated id/created_at)."""
        rows = self._request(
            "post",
            body=fields,
            extra_headers={"Prefer": "return=representation"},
        )
        if not rows:
            raise StoreUnavailable("Insert returned no row representation")
        return Artifact.from_row(rows[0])

    def patch(
        self, artifact_id: str, fields: dict, project_id: Optional[str] = None
    ) -> None:
        _check_patch_fields(fields)
        params = {"id": f"eq.{artifact_id}"}
        if project_id is not None:
            params["project_id"] = f"eq.{project_id}"
        rows = self._request(
            "patch",
            params=params,
            body=fields,
            extra_headers={"Prefer": "return=representation"},
        )
        if not rows:
            raise ArtifactNotFound(f"No artifact with id {artifact_id}")

    def _request(self, method: str, params=None, body=None, extra_headers=None) -> list:
        headers = dict(self.headers)
        if extra_headers:
            headers.update(extra_headers)
        try:
            resp = requests.request(
                method.upper(),
                self.base_url,
                headers=headers,
                params=params,
                json=body,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise StoreUnavailable(f"Artifact store request failed: {e}")

        if resp.status_code >= 400:
            raise StoreUnavailable(
                f"Artifact store returned HTTP {resp.status_code}: {resp.text[:500]}",
                http_status=resp.status_code,
            )
        if not resp.content:
            return []
        try:
            data = resp.json()
        except ValueError:
            raise StoreUnavailable("Artifact store returned a non-JSON body")
        return data if isinstance(data, list) else [data]


# ---------------------------------------------------------------------------
# LOCAL JSON FILE BACKEND
# ---------------------------------------------------------------------------


class LocalArtifactStore(ArtifactStore):
    """
    project_artifacts kept in a single JSON file.

    The file is re-read on every call and rewritten on every write, so two
    processes pointed at the same file see each other's rows (last write
    wins, same as the real table without locking).
    """

    def __init__(self, path: str, logger: Optional[logging.Logger] = None):
        self.path = path
        self.logger = logger or logging.getLogger(__name__)

    def list_active(self, project_id: str, exclude_types: Iterable = ()) -> list:
        excluded = set(excluded_type_tags(exclude_types))
        artifacts = [
            Artifact.from_row(row)
            for row in self._load()
            if row.get("project_id") == project_id
            and (row.get("status") or "active") == ArtifactStatus.ACTIVE.value
            and (row.get("artifact_type") or "unknown") not in excluded
        ]
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        artifacts.sort(key=lambda a: a.created_at or epoch, reverse=True)
        return artifacts

    def list_reviews(self, project_id: str) -> list:
        reviews = [
            Artifact.from_row(row)
            for row in self._load()
            if row.get("project_id") == project_id
            and (row.get("status") or "active") == ArtifactStatus.ACTIVE.value
            and row.get("artifact_type") == REVIEW_ARTIFACT_TYPE.value
        ]
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        reviews.sort(key=lambda a: a.created_at or epoch, reverse=True)
        return reviews

    def get(self, artifact_id: str) -> Optional[Artifact]:
        for row in self._load():
            if row.get("id") == artifact_id:
                return Artifact.from_row(row)
        return None

    def insert(self, fields: dict) -> Artifact:
        rows = self._load()
        row = {
            "status": ArtifactStatus.ACTIVE.value,
            "advisor_feedback": None,
            "advisor_reviewed_at": None,
            **fields,
            "id": str(uuid.uuid4()),
            "created_at": format_timestamp(datetime.now(timezone.utc)),
        }
        rows.append(row)
        self._save(rows)
        return Artifact.from_row(row)

    def patch(
        self, artifact_id: str, fields: dict, project_id: Optional[str] = None
    ) -> None:
        _check_patch_fields(fields)
        rows = self._load()
        for row in rows:
            if row.get("id") != artifact_id:
                continue
            if project_id is None or str(row.get("project_id", "")).lower() == project_id.lower():
                row.update(fields)
                self._save(rows)
                return
        raise ArtifactNotFound(f"No artifact with id {artifact_id}")

    def _load(self) -> list:
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreUnavailable(f"Could not read local artifact store {self.path}: {e}")
        if not isinstance(data, dict):
            raise StoreUnavailable(f"Local artifact store {self.path} is not a JSON object")
        return list(data.get("artifacts", []))

    def _save(self, rows: list) -> None:
        tmp_path = f"{self.path}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump({"artifacts": rows}, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StoreUnavailable(f"Could not write local artifact store {self.path}: {e}")


def build_artifact_store(config, logger: Optional[logging.Logger] = None) -> ArtifactStore:
    """Return the store backend selected by config.store_mode."""
    if config.store_mode == "remote":
        if not config.supabase_url or not config.supabase_service_role_key:
            raise ConfigurationError(
                "STORE_MODE=remote requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY"
            )
        return SupabaseArtifactStore(
            config.supabase_url, config.supabase_service_role_key, logger=logger
        )
    return LocalArtifactStore(config.local_store_path, logger=logger)

"""Store forms as JSON files in a GitHub repository via the Contents API."""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import requests

from uad_forms.config import GitHubConfig
from uad_forms.form_store import SaveResult, resolve_remote_form_path

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10


@dataclass(frozen=True)
class RemoteDocument:
    """A decoded form document and the blob SHA it was read at."""

    document: Dict[str, Any]
    sha: Optional[str]


@dataclass(frozen=True)
class ContentsClient:
    """Read and write one repository file through the GitHub Contents API."""

    config: GitHubConfig
    path: str

    @property
    def url(self) -> str:
        """Return the Contents API URL of the file."""

        base = self.config.api_url.rstrip("/")
        return f"{base}/repos/{self.config.repo}/contents/{self.path}"

    def _headers(self) -> Dict[str, str]:
        """Build request headers for the GitHub API."""

        return {
            "Authorization": f"Bearer {self.config.token}",
            "Accept": "application/vnd.github+json",
        }

    def _fetch(self) -> requests.Response:
        """Request the file metadata and content on the configured branch."""

        return requests.get(
            self.url,
            headers=self._headers(),
            params={"ref": self.config.branch},
            timeout=REQUEST_TIMEOUT,
        )

    def current_sha(self) -> Optional[str]:
        """Return the SHA of the stored file, or ``None`` when it does not exist yet."""

        response = self._fetch()
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json().get("sha")

    def read(self) -> RemoteDocument:
        """Return the decoded document with its SHA."""

        response = self._fetch()
        response.raise_for_status()
        body = response.json()
        if body.get("encoding", "base64") != "base64":
            raise ValueError(f"{self.path} is not base64 encoded")
        text = base64.b64decode(body.get("content", "")).decode("utf-8")
        return RemoteDocument(json.loads(text), body.get("sha"))

    def write(self, document: Mapping[str, Any], message: str, sha: Optional[str]) -> Dict[str, Any]:
        """Commit ``document``; a stale ``sha`` makes GitHub reject the write with 409."""

        encoded = base64.b64encode(json.dumps(document, indent=2).encode("utf-8")).decode("ascii")
        body: Dict[str, Any] = {"message": message, "branch": self.config.branch, "content": encoded}
        if sha:
            body["sha"] = sha
        response = requests.put(self.url, headers=self._headers(), json=body, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        return response.json()


class GitHubFormStore:
    """Form store backed by a GitHub repository.

    The SHA seen on the last load or save is sent with the next write, so a
    save fails instead of overwriting a newer version written elsewhere.
    """

    def __init__(self, config: GitHubConfig) -> None:
        self.config = config
        self._shas: Dict[str, Optional[str]] = {}

    def client(self, form_id: str) -> ContentsClient:
        """Return a client for the file holding ``form_id``."""

        return ContentsClient(self.config, resolve_remote_form_path(self.config.path, form_id))

    def list_forms(self) -> Dict[str, str]:
        # The Contents API offers no cheap listing of templated paths.
        return {form_id: form_id for form_id in self._shas}

    def load(self, form_id: str) -> Dict[str, Any]:
        remote = self.client(form_id).read()
        self._shas[form_id] = remote.sha
        logger.debug("Loaded form %s from GitHub at %s", form_id, remote.sha)
        return remote.document

    def save(self, form_id: str, document: Mapping[str, Any]) -> SaveResult:
        client = self.client(form_id)
        try:
            sha = self._shas[form_id] if form_id in self._shas else client.current_sha()
            committed = client.write(document, f"Save form {form_id}", sha)
        except requests.RequestException as exc:
            logger.error("Could not save form %s to GitHub: %s", form_id, exc)
            return SaveResult(False, client.path, [str(exc)])

        content = committed.get("content") or {}
        self._shas[form_id] = content.get("sha")
        logger.info("Saved form %s to %s/%s", form_id, self.config.repo, client.path)
        return SaveResult(True, content.get("html_url") or client.path)


__all__ = ["ContentsClient", "GitHubFormStore", "RemoteDocument"]

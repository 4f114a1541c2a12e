"""Application settings read from Streamlit secrets and the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, Optional

ENV_PREFIX = "UAD_FORMS_"
DEFAULT_REMOTE_PATH = "form_schemas/{form_id}/form_schema.json"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class GitHubConfig:
    token: str
    repo: str
    path: str = DEFAULT_REMOTE_PATH
    branch: str = "main"
    api_url: str = "https://api.github.com"


@dataclass(frozen=True)
class AppConfig:
    forms_root: Path = Path("form_schemas")
    github: Optional[GitHubConfig] = None
    reset_on_hide: bool = False
    log_level: str = "INFO"


def _secrets_dict(secrets: Mapping[str, Any], name: str) -> Dict[str, Any]:
    """Return a mapping stored under ``name`` in ``secrets``."""

    value = secrets.get(name, {})
    if isinstance(value, Mapping):
        return dict(value)
    return {}


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUTHY


def github_config_from_secrets(
    secrets: Mapping[str, Any],
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[GitHubConfig]:
    """Return GitHub settings from a ``[github]`` table or flat keys.

    Flat ``github_*`` secrets and ``UAD_FORMS_GITHUB_*`` environment variables
    fill in whatever the table leaves out. ``None`` means the store is not
    configured.
    """

    environ = os.environ if environ is None else environ
    table = _secrets_dict(secrets, "github")

    def pick(key: str, default: Optional[str] = None) -> Optional[str]:
        return (
            table.get(key)
            or secrets.get(f"github_{key}")
            or environ.get(f"{ENV_PREFIX}GITHUB_{key.upper()}")
            or default
        )

    token = pick("token")
    repo = pick("repo")
    if not (token and repo):
        return None
    return GitHubConfig(
        token=str(token),
        repo=str(repo),
        path=str(pick("path", DEFAULT_REMOTE_PATH)),
        branch=str(pick("branch", "main")),
        api_url=str(pick("api_url", "https://api.github.com")),
    )


def load_config(
    secrets: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> AppConfig:
    """Build the application settings; secrets win over environment variables."""

    secrets = secrets or {}
    environ = os.environ if environ is None else environ

    def setting(key: str, default: Any) -> Any:
        if key in secrets:
            return secrets[key]
        return environ.get(f"{ENV_PREFIX}{key.upper()}", default)

    return AppConfig(
        forms_root=Path(setting("forms_root", "form_schemas")),
        github=github_config_from_secrets(secrets, environ),
        reset_on_hide=_as_bool(setting("reset_on_hide", False)),
        log_level=str(setting("log_level", "INFO")).upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    """Send package logs to stderr at ``level``."""

    logging.basicConfig(level=logging.WARNING, format=LOG_FORMAT)
    logging.getLogger("uad_forms").setLevel(getattr(logging, level.upper(), logging.INFO))


__all__ = [
    "AppConfig",
    "DEFAULT_REMOTE_PATH",
    "GitHubConfig",
    "configure_logging",
    "github_config_from_secrets",
    "load_config",
]

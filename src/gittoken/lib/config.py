"""Configuration loading: CLI flags → env vars → defaults (plus ``.env``)."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from gittoken.lib.ai_providers import DEFAULT_PROVIDER, PROVIDERS
from gittoken.lib.fetcher import DEFAULT_BATCH_SIZE
from gittoken.lib.github import parse_repo_reference
from gittoken.lib.ranker import DEFAULT_WEIGHTS
from gittoken.lib.tree import MAX_AUTO_SELECT_SIZE

logger = logging.getLogger(__name__)

_MODEL_PATTERN = re.compile(r"^[a-zA-Z0-9._:/-]+$")

ConfigValue = str | bool | int | None

_TRUTHY = ("1", "true", "yes")


def _validate_repo(repo: str) -> None:
    """Validate repo format: must be empty, ``owner/repo``, or a GitHub URL."""
    if not repo:
        return
    parse_repo_reference(repo)


def _validate_provider(provider: str) -> None:
    if provider not in PROVIDERS:
        available = ", ".join(sorted(PROVIDERS))
        msg = f"Unknown provider '{provider}' (available: {available})"
        raise ValueError(msg)


def _validate_model(model: str) -> None:
    """Warn if model string doesn't match expected patterns."""
    if not model or model == "default":
        return
    if not _MODEL_PATTERN.match(model):
        logger.warning(
            "Model '%s' contains unexpected characters; "
            "expected a bare name (e.g. 'gemini-2.5-flash-lite')",
            model,
        )


def _validate_positive(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer")
    if value <= 0:
        raise ValueError(f"{name} must be > 0")


def _env_int(name: str) -> int | None:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _load_env_files() -> None:
    """Load a dotenv file from the working directory, if present."""
    load_dotenv(Path.cwd() / ".env", override=False)


@dataclass(frozen=True)
class Config:
    """Immutable application configuration."""

    repo: str = ""
    provider: str = DEFAULT_PROVIDER
    model: str = "default"
    verbose: bool = False
    batch_size: int = DEFAULT_BATCH_SIZE
    max_file_size: int = MAX_AUTO_SELECT_SIZE
    max_context_files: int = DEFAULT_WEIGHTS.max_files

    def __post_init__(self) -> None:
        """Validate config fields on creation.

        ``repo`` must be empty, ``owner/repo``, or a github.com URL and
        ``provider`` must name a registered provider. Numeric limits must be
        positive. A ``model`` with unexpected characters only logs a warning.
        """
        _validate_repo(self.repo)
        _validate_provider(self.provider)
        _validate_model(self.model)
        _validate_positive("batch_size", self.batch_size)
        _validate_positive("max_file_size", self.max_file_size)
        _validate_positive("max_context_files", self.max_context_files)

    @classmethod
    def from_env(cls, overrides: dict[str, ConfigValue] | None = None) -> Config:
        """Build config from environment variables, then apply overrides.

        Priority: overrides (CLI flags) > env vars > defaults.
        """
        _load_env_files()

        env_values: dict[str, ConfigValue] = {
            "provider": os.environ.get("GITTOKEN_PROVIDER"),
            "model": os.environ.get("GITTOKEN_MODEL"),
            "verbose": os.environ.get("GITTOKEN_VERBOSE", "").lower() in _TRUTHY,
            "batch_size": _env_int("GITTOKEN_BATCH_SIZE"),
            "max_file_size": _env_int("GITTOKEN_MAX_FILE_SIZE"),
            "max_context_files": _env_int("GITTOKEN_MAX_CONTEXT_FILES"),
        }

        merged = {k: v for k, v in env_values.items() if v}
        if overrides:
            merged.update({k: v for k, v in overrides.items() if v is not None})

        return cls(
            repo=str(merged.get("repo", cls.repo)),
            provider=str(merged.get("provider", cls.provider)),
            model=str(merged.get("model", cls.model)),
            verbose=bool(merged.get("verbose", cls.verbose)),
            batch_size=int(merged.get("batch_size", cls.batch_size)),
            max_file_size=int(merged.get("max_file_size", cls.max_file_size)),
            max_context_files=int(
                merged.get("max_context_files", cls.max_context_files)
            ),
        )

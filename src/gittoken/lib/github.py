"""GitHub integration: repository metadata, recursive listings, and blobs.

This module is the content-retrieval collaborator for the ingestion engine.
It wraps PyGithub for the REST API and exposes ``aget_*`` coroutines that
run the blocking calls in a worker thread.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

from github import Auth, Github, GithubException
from github.Repository import Repository

from gittoken.lib.models import Entry, RepoDetails

__all__ = [
    "DECODE_ERROR_PLACEHOLDER",
    "GitHubClient",
    "GitHubError",
    "RateLimitError",
    "RepoNotFoundError",
    "UnauthorizedError",
    "parse_repo_reference",
]

logger = logging.getLogger(__name__)

DECODE_ERROR_PLACEHOLDER = "// Error decoding file content (might be binary)"

_NAME_PART = r"[A-Za-z0-9._-]+"
_OWNER_REPO_PATTERN = re.compile(rf"^({_NAME_PART})/({_NAME_PART})$")


class GitHubError(RuntimeError):
    """Generic GitHub API failure; carries a user-facing message."""

    status: int | None = None

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        if status is not None:
            self.status = status


class RepoNotFoundError(GitHubError):
    """Repository, branch, or blob does not exist (HTTP 404)."""

    status = 404


class RateLimitError(GitHubError):
    """Rate limit exceeded or access forbidden (HTTP 403/429)."""

    status = 403


class UnauthorizedError(GitHubError):
    """Token rejected (HTTP 401)."""

    status = 401


def _github_error(
    exc: GithubException,
    *,
    not_found: str,
    rate_limited: str,
    unauthorized: str,
    generic: str,
) -> GitHubError:
    """Map a PyGithub exception to the matching ``GitHubError`` subclass."""
    status = getattr(exc, "status", None)
    if status == 404:
        return RepoNotFoundError(not_found)
    if status in (403, 429):
        return RateLimitError(rate_limited)
    if status == 401:
        return UnauthorizedError(unauthorized)
    detail = getattr(exc, "data", None)
    message = detail.get("message", "") if isinstance(detail, dict) else ""
    parts = [generic]
    if status:
        parts.append(f"(HTTP {status})")
    if message:
        parts.append(f"- {message}")
    return GitHubError(" ".join(parts), status=status)


def _network_error(action: str, exc: OSError) -> GitHubError:
    """Wrap a transport failure (connection, timeout) raised under PyGithub."""
    return GitHubError(f"Could not reach GitHub while {action}: {exc}")


def parse_repo_reference(text: str) -> tuple[str, str]:
    """Return ``(owner, repo)`` from an ``owner/repo`` string or GitHub URL.

    Raises:
        ValueError: If *text* is neither form.
    """
    cleaned = text.strip()
    if "github.com" in cleaned:
        if "://" not in cleaned:
            cleaned = f"https://{cleaned}"
        parts = [part for part in urlparse(cleaned).path.split("/") if part]
        if len(parts) >= 2:
            owner, repo = parts[0], parts[1].removesuffix(".git")
            if _OWNER_REPO_PATTERN.match(f"{owner}/{repo}"):
                return owner, repo
        msg = f"Invalid GitHub URL: {text!r}"
        raise ValueError(msg)

    match = _OWNER_REPO_PATTERN.match(cleaned)
    if match:
        return match.group(1), match.group(2)
    msg = (
        f"Invalid repository {text!r}: enter a GitHub URL or 'owner/repo'. "
        "Example: github.com/owner/repo"
    )
    raise ValueError(msg)


@dataclass
class GitHubClient:
    """GitHub client for reading repositories.

    The token is read from the ``token`` field, or falls back to the
    ``GITHUB_TOKEN`` / ``GH_TOKEN`` environment variable. Without a token the
    client uses anonymous access, which works for public repositories under
    a much lower rate limit.
    """

    token: str = ""
    _gh: Github = field(init=False, repr=False)
    _repos: dict[str, Repository] = field(
        init=False, repr=False, default_factory=dict
    )

    def __post_init__(self) -> None:
        self.token = self.token or os.environ.get(
            "GITHUB_TOKEN", os.environ.get("GH_TOKEN", "")
        )
        if self.token:
            self._gh = Github(auth=Auth.Token(self.token))
        else:
            logger.debug("No GitHub token set; using anonymous API access")
            self._gh = Github()

    @property
    def authenticated(self) -> bool:
        return bool(self.token)

    # ------------------------------------------------------------------
    # Repository
    # ------------------------------------------------------------------

    def _get_repo(self, owner: str, repo: str) -> Repository:
        """Get (and cache) a repository by owner/name."""
        full_name = f"{owner}/{repo}"
        cached = self._repos.get(full_name)
        if cached is not None:
            return cached
        try:
            gh_repo = self._gh.get_repo(full_name)
        except GithubException as exc:
            error = _github_error(
                exc,
                not_found=(
                    "Repository not found (404). Please check the owner and "
                    "repository name."
                ),
                rate_limited=(
                    "GitHub API rate limit exceeded (403). Please add a GitHub "
                    "token (GITHUB_TOKEN) to increase your limit."
                ),
                unauthorized=(
                    "Invalid GitHub token (401). Please check GITHUB_TOKEN."
                ),
                generic=f"GitHub API error while accessing '{full_name}'",
            )
            logger.error("%s", error)
            raise error from exc
        except OSError as exc:
            error = _network_error(f"accessing '{full_name}'", exc)
            logger.error("%s", error)
            raise error from exc
        self._repos[full_name] = gh_repo
        return gh_repo

    def get_repo_details(self, owner: str, repo: str) -> RepoDetails:
        """Return owner, name, default branch, stars, and description."""
        gh_repo = self._get_repo(owner, repo)
        return RepoDetails(
            owner=gh_repo.owner.login,
            name=gh_repo.name,
            default_branch=gh_repo.default_branch,
            stars=gh_repo.stargazers_count,
            description=gh_repo.description or "",
        )

    def get_repo_tree(self, owner: str, repo: str, branch: str) -> list[Entry]:
        """Return the recursive listing of *branch* as raw entries."""
        gh_repo = self._get_repo(owner, repo)
        try:
            tree = gh_repo.get_git_tree(branch, recursive=True)
        except GithubException as exc:
            error = _github_error(
                exc,
                not_found=(
                    "Repository tree not found. The branch might not exist."
                ),
                rate_limited=(
                    "GitHub API rate limit exceeded (403). Please add a GitHub "
                    "token (GITHUB_TOKEN)."
                ),
                unauthorized=(
                    "Invalid GitHub token (401). Please check GITHUB_TOKEN."
                ),
                generic=f"Failed to fetch file tree for '{owner}/{repo}@{branch}'",
            )
            logger.error("%s", error)
            raise error from exc
        except OSError as exc:
            error = _network_error(f"listing '{owner}/{repo}@{branch}'", exc)
            logger.error("%s", error)
            raise error from exc

        if tree.raw_data.get("truncated"):
            logger.warning(
                "Repository %s/%s is too large; GitHub truncated the tree.",
                owner,
                repo,
            )
        entries = [Entry.from_github(element) for element in tree.tree]
        return [entry for entry in entries if entry is not None]

    def get_file_content(self, owner: str, repo: str, sha: str) -> str:
        """Return the UTF-8 text of the blob *sha*.

        Blobs that are not valid UTF-8 yield ``DECODE_ERROR_PLACEHOLDER``.
        """
        gh_repo = self._get_repo(owner, repo)
        try:
            blob = gh_repo.get_git_blob(sha)
        except GithubException as exc:
            raise _github_error(
                exc,
                not_found=f"File content not found for blob {sha}.",
                rate_limited="Rate limit exceeded while fetching file content.",
                unauthorized="Invalid GitHub token (401) while fetching content.",
                generic="Failed to fetch file content",
            ) from exc
        except OSError as exc:
            raise _network_error(f"fetching blob {sha}", exc) from exc
        return _decode_blob(blob.content, blob.encoding)

    # ------------------------------------------------------------------
    # Async adapters
    # ------------------------------------------------------------------

    async def aget_repo_details(self, owner: str, repo: str) -> RepoDetails:
        return await asyncio.to_thread(self.get_repo_details, owner, repo)

    async def aget_repo_tree(self, owner: str, repo: str, branch: str) -> list[Entry]:
        return await asyncio.to_thread(self.get_repo_tree, owner, repo, branch)

    async def aget_file_content(self, owner: str, repo: str, sha: str) -> str:
        return await asyncio.to_thread(self.get_file_content, owner, repo, sha)

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the underlying GitHub connection."""
        self._gh.close()

    def __enter__(self) -> GitHubClient:
        """Enter the context manager and return self."""
        return self

    def __exit__(self, *_: Any) -> None:
        """Exit the context manager and close the connection."""
        self.close()


def _decode_blob(content: str, encoding: str | None) -> str:
    if encoding not in (None, "base64"):
        return content
    try:
        data = base64.b64decode("".join(content.split()))
        return data.decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        logger.debug("Blob decode failed: %s", exc)
        return DECODE_ERROR_PLACEHOLDER

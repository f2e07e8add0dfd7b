"""Ingestion session: one repository, its selection, digests, and chat.

A new ``ingest`` call discards all derived state and mints a new session id.
Every await point re-checks that id so a superseded request can never write
into the newer session's state.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from typing import Protocol

from gittoken.lib.analyst import Analyst
from gittoken.lib.config import Config
from gittoken.lib.digest import render_digest
from gittoken.lib.fetcher import ContentFetcher, ProgressCallback
from gittoken.lib.models import ChatMessage, Digest, Entry, RepoDetails
from gittoken.lib.selection import SelectionState
from gittoken.lib.tree import IGNORED_EXTENSIONS, build_tree, normalize_extension

__all__ = ["IngestSession", "IngestionSuperseded", "RepositorySource"]

logger = logging.getLogger(__name__)


class RepositorySource(Protocol):
    """Content-retrieval collaborator used by ``IngestSession``."""

    async def aget_repo_details(self, owner: str, repo: str) -> RepoDetails: ...

    async def aget_repo_tree(
        self, owner: str, repo: str, branch: str
    ) -> list[Entry]: ...

    async def aget_file_content(self, owner: str, repo: str, sha: str) -> str: ...


class IngestionSuperseded(RuntimeError):
    """Raised to a request whose session was replaced while it was awaiting."""


class IngestSession:
    """Drive ingestion, selection, digest rendering, and chat for one user."""

    def __init__(
        self,
        source: RepositorySource,
        *,
        config: Config | None = None,
        analyst: Analyst | None = None,
        progress: ProgressCallback | None = None,
        extra_ignored_extensions: Iterable[str] = (),
        deselected_extensions: Iterable[str] = (),
    ) -> None:
        self.source = source
        self.config = config or Config()
        self.analyst = analyst
        self._progress_callback = progress
        self._ignored_extensions = IGNORED_EXTENSIONS | {
            normalize_extension(ext) for ext in extra_ignored_extensions
        }
        self._deselected_extensions = tuple(
            normalize_extension(ext) for ext in deselected_extensions
        )
        self._fetcher = ContentFetcher(source, batch_size=self.config.batch_size)
        self._reset()

    def _reset(self) -> None:
        self.session_id = uuid.uuid4().hex
        self.details: RepoDetails | None = None
        self.state = SelectionState()
        self.digest: Digest | None = None
        self.digest_is_stale = False
        self.history: list[ChatMessage] = []
        self.error: str | None = None
        self.loading = False
        self.status = ""
        self.progress = 0

    def _report(self, percent: int, status: str) -> None:
        self.progress = percent
        self.status = status
        if self._progress_callback is not None:
            self._progress_callback(percent, status)

    def _ensure_current(self, session_id: str) -> None:
        if session_id != self.session_id:
            logger.debug("Discarding results of superseded session %s", session_id)
            raise IngestionSuperseded(
                f"Ingestion {session_id} was superseded by a newer request"
            )

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def ingest(self, owner: str, repo: str) -> Digest:
        """Load *owner/repo* from scratch and render its digest.

        Raises:
            GitHubError: Listing failures (not found, rate limit, auth).
            TreeBuildError: Inconsistent listing.
            Exception: Any other listing failure, after the loading state
                is reset and ``error`` recorded.
            IngestionSuperseded: A newer ``ingest`` started meanwhile.
        """
        self._reset()
        session_id = self.session_id
        self.loading = True
        self._report(5, "Fetching repository details...")

        try:
            details = await self.source.aget_repo_details(owner, repo)
            self._ensure_current(session_id)
            self.details = details
            self._report(20, "Fetching file tree...")

            entries = await self.source.aget_repo_tree(
                details.owner, details.name, details.default_branch
            )
            self._ensure_current(session_id)
            tree = build_tree(
                entries,
                ignored_extensions=self._ignored_extensions,
                max_auto_select_size=self.config.max_file_size,
            )
        except Exception as exc:
            if session_id == self.session_id:
                self.details = None
                self.loading = False
                self.status = ""
                self.error = str(exc)
            raise

        self.state = SelectionState(tree)
        for ext in self._deselected_extensions:
            self.state.set_extension(ext, False)
        self._report(40, "Preparing file selection...")
        logger.info(
            "Ingested %s: %d files", details.full_name, len(self.state.files)
        )
        return await self.generate_digest(initial_progress=40)

    async def generate_digest(self, initial_progress: int = 0) -> Digest:
        """Fetch content for pending selected files and re-render digests."""
        if self.details is None:
            raise ValueError("Please ingest a repository first.")

        session_id = self.session_id
        details = self.details
        start = initial_progress or 10
        self.loading = True
        self.error = None
        self._report(start, "Rendering digest...")

        pending = self.state.pending_files()
        if pending:
            fetched = await self._fetcher.fetch(
                details.owner,
                details.name,
                pending,
                progress=self._report,
                progress_range=(start, 95),
            )
            self._ensure_current(session_id)
            self.state.attach_contents(fetched)

        self.digest = render_digest(details, self.state)
        self.digest_is_stale = False
        self.loading = False
        self._report(100, "")
        return self.digest

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def toggle(self, path: str, checked: bool) -> None:
        self.state.toggle(path, checked)
        self.digest_is_stale = True

    def toggle_extension(self, ext: str) -> bool | None:
        applied = self.state.toggle_by_extension(normalize_extension(ext))
        if applied is not None:
            self.digest_is_stale = True
        return applied

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def ask(self, query: str) -> ChatMessage:
        """Answer *query* about the ingested repository.

        Failures become an error turn in ``history``; earlier turns are kept.

        Raises:
            ValueError: If no repository has been ingested or *query* is blank.
        """
        if not query.strip():
            raise ValueError("Question must not be empty.")
        if not self.state.files:
            raise ValueError("Please ingest a repository first.")

        session_id = self.session_id
        digest = self.digest
        if digest is None or self.digest_is_stale or self.state.pending_files():
            digest = await self.generate_digest()
        self._ensure_current(session_id)

        prior = list(self.history)
        self.history.append(ChatMessage(role="user", text=query))

        try:
            if self.analyst is None:
                raise RuntimeError("No answer-generation provider configured")
            result = await self.analyst.analyze(
                self.state.files, digest.tree, query, prior
            )
            reply = ChatMessage(
                role="model",
                text=result.text,
                relevant_files=result.relevant_files,
            )
        except Exception as exc:
            logger.warning("Chat turn failed: %s", exc)
            reply = ChatMessage(
                role="model", text=f"Error analyzing: {exc}", is_error=True
            )

        self._ensure_current(session_id)
        self.history.append(reply)
        return reply

"""Batched, failure-tolerant file content fetching."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Protocol

from gittoken.lib.models import Node
from gittoken.lib.notebook import transform_content

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "FETCH_ERROR_PLACEHOLDER",
    "ContentFetcher",
    "ContentSource",
    "ProgressCallback",
]

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
FETCH_ERROR_PLACEHOLDER = "// Error fetching content"

ProgressCallback = Callable[[int, str], None]


class ContentSource(Protocol):
    """Anything that can load one file's text by its content hash."""

    async def aget_file_content(self, owner: str, repo: str, sha: str) -> str: ...


class ContentFetcher:
    """Fetch file contents in fixed-size concurrent batches.

    Batches run strictly in order and each one is awaited in full before the
    next starts, which caps in-flight requests at ``batch_size``.
    """

    def __init__(
        self,
        source: ContentSource,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        self.source = source
        self.batch_size = batch_size

    async def _fetch_one(self, owner: str, repo: str, node: Node) -> tuple[str, str]:
        try:
            if not node.sha:
                raise ValueError("file has no content hash")
            raw = await self.source.aget_file_content(owner, repo, node.sha)
            return node.path, transform_content(node.path, raw)
        except Exception as exc:
            logger.warning("Failed to fetch %s: %s", node.path, exc)
            return node.path, FETCH_ERROR_PLACEHOLDER

    async def fetch(
        self,
        owner: str,
        repo: str,
        files: Sequence[Node],
        *,
        progress: ProgressCallback | None = None,
        progress_range: tuple[int, int] = (10, 95),
    ) -> dict[str, str]:
        """Fetch *files* and return their contents keyed by path.

        Args:
            owner: Repository owner.
            repo: Repository name.
            files: File nodes to load, in enumeration order.
            progress: Called after every batch with a percentage inside
                *progress_range* and a status line.
            progress_range: ``(start, end)`` percentages mapped linearly onto
                completed/total.

        Returns:
            One entry per input path; failed fetches hold
            ``FETCH_ERROR_PLACEHOLDER``.
        """
        results: dict[str, str] = {}
        total = len(files)
        if total == 0:
            return results

        start, end = progress_range
        if progress is not None:
            progress(start, f"Fetching content... (0/{total})")

        done = 0
        for offset in range(0, total, self.batch_size):
            batch = files[offset : offset + self.batch_size]
            fetched = await asyncio.gather(
                *(self._fetch_one(owner, repo, node) for node in batch)
            )
            results.update(fetched)
            done += len(batch)
            logger.debug("Fetched %d/%d files", done, total)
            if progress is not None:
                percent = round(start + (done / total) * (end - start))
                progress(percent, f"Fetching content... ({done}/{total})")
        return results

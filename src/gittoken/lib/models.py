"""Domain datatypes shared by the ingestion engine.

``Entry`` is the raw record from a repository listing; ``Node`` is the
filtered, hierarchical element the selection manager and renderers work on.
Everything here is immutable: state changes produce new values.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from typing import Any, Literal

__all__ = [
    "ChatMessage",
    "Digest",
    "Entry",
    "EntryType",
    "ExtensionStat",
    "Node",
    "ProcessingStats",
    "RepoDetails",
    "ScoredFile",
]

EntryType = Literal["file", "directory"]

_GITHUB_TYPES: dict[str, EntryType] = {"blob": "file", "tree": "directory"}


@dataclass(frozen=True)
class Entry:
    """One raw path record from a repository listing, pre-filtering."""

    path: str
    type: EntryType = "file"
    size: int | None = None
    sha: str | None = None

    @classmethod
    def from_github(cls, element: Any) -> Entry | None:
        """Map a GitHub git-tree element to an ``Entry``.

        Submodule (``commit``) elements have no content and yield ``None``.
        """
        entry_type = _GITHUB_TYPES.get(str(element.type))
        if entry_type is None:
            return None
        sha = element.sha if entry_type == "file" else None
        size = element.size if entry_type == "file" else None
        return cls(path=element.path, type=entry_type, size=size, sha=sha)


@dataclass(frozen=True)
class Node:
    """Tree element after ignore-filtering and hierarchy construction."""

    path: str
    name: str
    type: EntryType
    extension: str = ""
    size: int | None = None
    sha: str | None = None
    is_selected: bool = True
    children: tuple[Node, ...] = ()
    content: str | None = None

    @property
    def is_dir(self) -> bool:
        return self.type == "directory"

    @property
    def is_file(self) -> bool:
        return self.type == "file"


@dataclass(frozen=True)
class RepoDetails:
    """Repository metadata returned by the content-retrieval collaborator."""

    owner: str
    name: str
    default_branch: str = "main"
    stars: int = 0
    description: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class ScoredFile:
    """A file's relevance to one query; recomputed per query."""

    path: str
    score: int

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "score": self.score}


@dataclass(frozen=True)
class ExtensionStat:
    """How many files share an extension and how many are selected."""

    ext: str
    count: int
    selected: int

    @property
    def fully_selected(self) -> bool:
        return self.selected == self.count


@dataclass(frozen=True)
class ProcessingStats:
    """Aggregate numbers over the flat file list."""

    total_files: int
    selected_files: int
    total_size: int

    @property
    def estimated_tokens(self) -> int:
        return math.ceil(self.total_size / 4)

    def to_dict(self) -> dict[str, int]:
        return {
            "total_files": self.total_files,
            "selected_files": self.selected_files,
            "total_size": self.total_size,
            "estimated_tokens": self.estimated_tokens,
        }


@dataclass(frozen=True)
class ChatMessage:
    """One turn of the chat over an ingested repository."""

    role: Literal["user", "model"]
    text: str
    timestamp: float = field(default_factory=time.time)
    is_error: bool = False
    relevant_files: tuple[ScoredFile, ...] = ()


@dataclass(frozen=True)
class Digest:
    """Text renderings of the current tree, selection, and content state."""

    tree: str
    content: str
    full: str
    markdown_tree: str = ""

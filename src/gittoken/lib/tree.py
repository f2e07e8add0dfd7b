"""Tree building: turn a flat repository listing into a selectable forest."""

from __future__ import annotations

import bisect
import logging
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field

from gittoken.lib.models import Entry, EntryType, Node

__all__ = [
    "IGNORED_DIRS",
    "IGNORED_EXTENSIONS",
    "MAX_AUTO_SELECT_SIZE",
    "TreeBuildError",
    "build_tree",
    "extension_of",
    "find_node",
    "flatten_files",
    "iter_nodes",
    "normalize_extension",
]

logger = logging.getLogger(__name__)

IGNORED_EXTENSIONS: frozenset[str] = frozenset(
    {
        # images
        ".png", ".jpg", ".jpeg", ".gif", ".svg", ".ico", ".webp",
        # video / audio
        ".mp4", ".mov", ".avi", ".webm", ".mp3", ".wav", ".ogg",
        # archives
        ".zip", ".tar", ".gz", ".7z", ".rar",
        # binaries
        ".exe", ".dll", ".so", ".dylib", ".bin",
        # documents
        ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
        # fonts
        ".eot", ".ttf", ".woff", ".woff2",
        # lockfiles, minified bundles, source maps
        ".lock", ".min.js", ".min.css", ".map",
    }
)

IGNORED_DIRS: frozenset[str] = frozenset(
    {
        ".git",
        "node_modules",
        "dist",
        "build",
        "coverage",
        ".next",
        ".vscode",
        ".idea",
        "__pycache__",
    }
)

# Files larger than this start unselected to bound token usage.
MAX_AUTO_SELECT_SIZE = 25 * 1024


class TreeBuildError(ValueError):
    """Raised when a repository listing cannot form a consistent tree."""


def extension_of(name: str) -> str:
    """Return the lowercased last dotted suffix of *name* (``""`` if none)."""
    if "." not in name:
        return ""
    return "." + name.rsplit(".", 1)[1].lower()


def normalize_extension(ext: str) -> str:
    """Lowercase *ext* and give it a leading dot (``"MD"`` becomes ``".md"``)."""
    ext = ext.strip().lower()
    return ext if ext.startswith(".") else f".{ext}"


def _is_ignored(
    parts: Sequence[str],
    entry_type: EntryType,
    ignored_dirs: Iterable[str],
    ignored_extensions: Iterable[str],
) -> bool:
    dir_parts = parts if entry_type == "directory" else parts[:-1]
    if any(part in ignored_dirs for part in dir_parts):
        return True
    if entry_type == "directory":
        return False
    name = parts[-1].lower()
    return any(name.endswith(ext) for ext in ignored_extensions)


def _sort_key(node: _Draft) -> tuple[int, str]:
    return (0 if node.type == "directory" else 1, node.name)


@dataclass
class _Draft:
    """Mutable node used only while the forest is being assembled."""

    path: str
    name: str
    type: EntryType
    size: int | None = None
    sha: str | None = None
    is_selected: bool = True
    children: list[_Draft] = field(default_factory=list)

    def freeze(self) -> Node:
        return Node(
            path=self.path,
            name=self.name,
            type=self.type,
            extension=extension_of(self.name) if self.type == "file" else "",
            size=self.size,
            sha=self.sha,
            is_selected=self.is_selected,
            children=tuple(child.freeze() for child in self.children),
        )


def _split_path(path: str) -> list[str]:
    parts = path.split("/")
    if not path or any(not part for part in parts):
        msg = f"Invalid repository path {path!r}: empty path segment"
        raise TreeBuildError(msg)
    return parts


def _insert(siblings: list[_Draft], node: _Draft) -> None:
    bisect.insort(siblings, node, key=_sort_key)


def _child(siblings: list[_Draft], name: str) -> _Draft | None:
    for node in siblings:
        if node.name == name:
            return node
    return None


def _ensure_directory(root: list[_Draft], parts: Sequence[str]) -> list[_Draft]:
    """Walk/create directory drafts for *parts*; return the deepest child list."""
    siblings = root
    for depth, name in enumerate(parts):
        path = "/".join(parts[: depth + 1])
        existing = _child(siblings, name)
        if existing is None:
            existing = _Draft(path=path, name=name, type="directory")
            _insert(siblings, existing)
        elif existing.type != "directory":
            msg = f"Path collision: {path!r} is both a file and a directory"
            raise TreeBuildError(msg)
        siblings = existing.children
    return siblings


def build_tree(
    entries: Iterable[Entry],
    *,
    ignored_dirs: Iterable[str] = IGNORED_DIRS,
    ignored_extensions: Iterable[str] = IGNORED_EXTENSIONS,
    max_auto_select_size: int = MAX_AUTO_SELECT_SIZE,
) -> tuple[Node, ...]:
    """Build a sorted, selectable forest from a flat repository listing.

    Args:
        entries: Unordered listing for one repository/branch.
        ignored_dirs: Directory names whose subtrees are dropped.
        ignored_extensions: Lowercased file-name suffixes that are dropped.
        max_auto_select_size: Files above this many bytes start unselected.

    Returns:
        Top-level nodes, directories first and then by name at every level.

    Raises:
        TreeBuildError: On empty path segments, duplicate file paths, or a
            path that is both a file and a directory.
    """
    dirs = frozenset(ignored_dirs)
    exts = tuple(ext.lower() for ext in ignored_extensions)
    root: list[_Draft] = []
    skipped = 0

    for entry in entries:
        parts = _split_path(entry.path)
        if _is_ignored(parts, entry.type, dirs, exts):
            skipped += 1
            continue

        if entry.type == "directory":
            _ensure_directory(root, parts)
            continue

        siblings = _ensure_directory(root, parts[:-1])
        existing = _child(siblings, parts[-1])
        if existing is not None:
            kind = "duplicate file" if existing.type == "file" else "path collision"
            msg = f"Invalid repository listing: {kind} at {entry.path!r}"
            raise TreeBuildError(msg)
        selected = entry.size is None or entry.size <= max_auto_select_size
        _insert(
            siblings,
            _Draft(
                path=entry.path,
                name=parts[-1],
                type="file",
                size=entry.size,
                sha=entry.sha,
                is_selected=selected,
            ),
        )

    if skipped:
        logger.debug("Skipped %d ignored entries", skipped)
    return tuple(draft.freeze() for draft in root)


def iter_nodes(nodes: Iterable[Node]) -> Iterator[Node]:
    """Yield every node in pre-order traversal order."""
    for node in nodes:
        yield node
        if node.children:
            yield from iter_nodes(node.children)


def flatten_files(nodes: Iterable[Node]) -> tuple[Node, ...]:
    """Return all file nodes in tree traversal order."""
    return tuple(node for node in iter_nodes(nodes) if node.is_file)


def find_node(nodes: Iterable[Node], path: str) -> Node | None:
    """Locate the node at *path*, descending only into matching directories."""
    for node in nodes:
        if node.path == path:
            return node
        if node.is_dir and path.startswith(node.path + "/"):
            return find_node(node.children, path)
    return None

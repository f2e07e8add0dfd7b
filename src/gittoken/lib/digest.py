"""Deterministic text renderings of the current selection.

All functions here are pure: they read a forest plus a content map and
return strings, recomputing directory selection from descendants each time.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence

from gittoken.lib.models import Digest, Node, RepoDetails
from gittoken.lib.selection import SelectionState, is_effectively_selected
from gittoken.lib.tree import flatten_files

__all__ = [
    "CONTENT_NOT_FOUND",
    "DELIMITER",
    "NO_FILES_SELECTED",
    "digest_filename",
    "estimate_tokens",
    "render_contents",
    "render_digest",
    "render_full",
    "render_markdown_tree",
    "render_tree",
]

DELIMITER = "=" * 48
NO_FILES_SELECTED = "// No files selected."
CONTENT_NOT_FOUND = "// Content not found"


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four characters, rounded up."""
    return math.ceil(len(text) / 4)


def _visible(nodes: Iterable[Node]) -> list[Node]:
    return [node for node in nodes if is_effectively_selected(node)]


def render_tree(nodes: Sequence[Node], root_name: str) -> str:
    """Render selected nodes as a box-drawing tree under *root_name*."""
    lines = [f"└── {root_name}"]

    def walk(node: Node, prefix: str, is_last: bool) -> None:
        connector = "    └── " if is_last else "    ├── "
        lines.append(f"{prefix}{connector}{node.name}")
        children = _visible(node.children)
        child_prefix = prefix + ("        " if is_last else "    │   ")
        for index, child in enumerate(children):
            walk(child, child_prefix, index == len(children) - 1)

    top_level = _visible(nodes)
    for index, node in enumerate(top_level):
        walk(node, "", index == len(top_level) - 1)
    return "\n".join(lines) + "\n"


def render_markdown_tree(nodes: Sequence[Node], root_name: str) -> str:
    """Render selected nodes as markdown headings, one level per depth."""
    lines = [f"# {root_name}"]

    def walk(children: Sequence[Node], level: int) -> None:
        for node in _visible(children):
            lines.append(f"{'#' * level} {node.name}")
            walk(node.children, level + 1)

    walk(nodes, 2)
    return "\n".join(lines) + "\n"


def render_contents(nodes: Sequence[Node], contents: Mapping[str, str]) -> str:
    """Concatenate the content of every selected file, framed by delimiters."""
    selected = [node for node in flatten_files(nodes) if node.is_selected]
    if not selected:
        return NO_FILES_SELECTED
    parts = []
    for node in selected:
        body = contents.get(node.path) or CONTENT_NOT_FOUND
        parts.append(f"\n{DELIMITER}\nFile: /{node.path}\n{DELIMITER}\n{body}\n")
    return "".join(parts)


def render_full(
    details: RepoDetails,
    selected_count: int,
    tree_digest: str,
    content_digest: str,
) -> str:
    """Build the exported artifact: metadata header, tree, then contents."""
    return (
        f"Repository: {details.full_name}\n"
        f"Files analyzed: {selected_count}\n"
        f"Estimated tokens: {estimate_tokens(content_digest)}\n\n"
        f"Directory structure:\n{tree_digest}\n\n"
        f"Files Content:\n{content_digest}"
    )


def render_digest(details: RepoDetails, state: SelectionState) -> Digest:
    """Render every digest view for *state*."""
    tree = render_tree(state.tree, details.name)
    content = render_contents(state.tree, state.contents)
    full = render_full(details, len(state.selected_files()), tree, content)
    return Digest(
        tree=tree,
        content=content,
        full=full,
        markdown_tree=render_markdown_tree(state.tree, details.name),
    )


def digest_filename(details: RepoDetails) -> str:
    return f"{details.name}_digest.txt"

"""Selection state: one canonical forest, two read views (tree and flat list).

Every mutation builds a new forest and commits it together with the content
map in a single step, so the flat file list is always derived from the same
snapshot as the tree and the two views cannot diverge.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import replace
from types import MappingProxyType

from gittoken.lib.models import ExtensionStat, Node, ProcessingStats
from gittoken.lib.tree import find_node, flatten_files

__all__ = ["SelectionState", "is_effectively_selected"]

logger = logging.getLogger(__name__)


def is_effectively_selected(node: Node) -> bool:
    """Return whether *node* takes part in rendering.

    Files report their own flag. Directories are selected when any
    descendant file is, regardless of the directory's stored flag.
    """
    if node.is_file:
        return node.is_selected
    return any(is_effectively_selected(child) for child in node.children)


def _set_subtree(node: Node, checked: bool) -> Node:
    if not node.children:
        return replace(node, is_selected=checked)
    return replace(
        node,
        is_selected=checked,
        children=tuple(_set_subtree(child, checked) for child in node.children),
    )


def _map_tree(
    nodes: tuple[Node, ...],
    update: Callable[[Node], Node | None],
) -> tuple[Node, ...]:
    """Rebuild *nodes*, replacing any node for which *update* returns a value.

    Replaced nodes are not descended into; untouched subtrees are shared
    with the previous forest.
    """
    rebuilt: list[Node] = []
    changed = False
    for node in nodes:
        new = update(node)
        if new is None and node.children:
            children = _map_tree(node.children, update)
            if children is not node.children:
                new = replace(node, children=children)
        if new is not None:
            changed = True
            rebuilt.append(new)
        else:
            rebuilt.append(node)
    return tuple(rebuilt) if changed else nodes


class SelectionState:
    """Checked/unchecked state over one ingested repository.

    ``tree`` is the source of truth for selection; ``files`` is the flat
    view of the same snapshot with fetched content attached.
    """

    def __init__(
        self,
        tree: Iterable[Node] = (),
        contents: Mapping[str, str] | None = None,
    ) -> None:
        self._tree: tuple[Node, ...] = ()
        self._contents: Mapping[str, str] = MappingProxyType({})
        self._files: tuple[Node, ...] = ()
        self._commit(tuple(tree), dict(contents or {}))

    def _commit(self, tree: tuple[Node, ...], contents: dict[str, str]) -> None:
        files = tuple(
            replace(node, content=contents[node.path])
            if node.path in contents
            else node
            for node in flatten_files(tree)
        )
        # Single assignment so readers never see a tree/flat-list mix.
        self._tree, self._contents, self._files = (
            tree,
            MappingProxyType(contents),
            files,
        )

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def tree(self) -> tuple[Node, ...]:
        return self._tree

    @property
    def files(self) -> tuple[Node, ...]:
        return self._files

    @property
    def contents(self) -> Mapping[str, str]:
        return self._contents

    def content_for(self, path: str) -> str | None:
        return self._contents.get(path)

    def find(self, path: str) -> Node | None:
        return find_node(self._tree, path)

    def selected_files(self) -> tuple[Node, ...]:
        return tuple(node for node in self._files if node.is_selected)

    def pending_files(self) -> tuple[Node, ...]:
        """Selected files whose content has not been fetched yet."""
        return tuple(
            node
            for node in self._files
            if node.is_selected and node.path not in self._contents
        )

    def extension_stats(self) -> list[ExtensionStat]:
        """Per-extension counts, most common extension first."""
        counts: dict[str, list[int]] = {}
        for node in self._files:
            if not node.extension or node.extension == ".":
                continue
            bucket = counts.setdefault(node.extension, [0, 0])
            bucket[0] += 1
            if node.is_selected:
                bucket[1] += 1
        stats = [
            ExtensionStat(ext=ext, count=count, selected=selected)
            for ext, (count, selected) in counts.items()
        ]
        stats.sort(key=lambda stat: stat.count, reverse=True)
        return stats

    def stats(self) -> ProcessingStats:
        selected = self.selected_files()
        return ProcessingStats(
            total_files=len(self._files),
            selected_files=len(selected),
            total_size=sum(node.size or 0 for node in selected),
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def toggle(self, path: str, checked: bool) -> None:
        """Set the node at *path* and all of its descendants to *checked*.

        Raises:
            KeyError: If no node exists at *path*.
        """
        if self.find(path) is None:
            raise KeyError(f"No file or directory at path {path!r}")

        def update(node: Node) -> Node | None:
            return _set_subtree(node, checked) if node.path == path else None

        self._commit(_map_tree(self._tree, update), dict(self._contents))
        logger.debug("Toggled %s -> %s", path, checked)

    def toggle_by_extension(self, ext: str) -> bool | None:
        """Flip every file with extension *ext* as a group.

        A partially or fully deselected group becomes fully selected; a fully
        selected group becomes fully deselected.

        Returns:
            The state applied, or ``None`` when no file has *ext*.
        """
        matching = [node for node in self._files if node.extension == ext]
        if not matching:
            return None
        target = not all(node.is_selected for node in matching)
        self.set_extension(ext, target)
        return target

    def set_extension(self, ext: str, checked: bool) -> None:
        """Set every file with extension *ext* to *checked*."""

        def update(node: Node) -> Node | None:
            if node.is_file and node.extension == ext:
                return replace(node, is_selected=checked)
            return None

        self._commit(_map_tree(self._tree, update), dict(self._contents))
        logger.debug("Set extension %s -> %s", ext, checked)

    def attach_contents(self, fetched: Mapping[str, str]) -> None:
        """Store fetched content keyed by path; unknown paths are ignored."""
        known = {node.path for node in self._files}
        contents = dict(self._contents)
        contents.update(
            {path: text for path, text in fetched.items() if path in known}
        )
        self._commit(self._tree, contents)

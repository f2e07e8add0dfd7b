"""Keyword relevance ranking and context assembly for repository chat."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from gittoken.lib.models import Node, ScoredFile

__all__ = [
    "NO_MATCH_NOTICE",
    "RankingWeights",
    "build_context",
    "build_prompt",
    "context_candidates",
    "rank",
    "score_file",
    "tokenize_query",
]

NO_MATCH_NOTICE = (
    "No specific file content matched the query keywords. Answering based on "
    "general knowledge and directory structure."
)


@dataclass(frozen=True)
class RankingWeights:
    """Tunable heuristic constants; only their relative order matters."""

    readme_bonus: int = 5
    manifest_bonus: int = 5
    manifest_names: tuple[str, ...] = (
        "package.json",
        "requirements.txt",
        "tsconfig",
        "pyproject.toml",
        "cargo.toml",
        "go.mod",
    )
    filename_bonus: int = 20
    path_bonus: int = 10
    content_cap: int = 10
    min_token_length: int = 3
    max_files: int = 20
    generic_file_count: int = 10


DEFAULT_WEIGHTS = RankingWeights()


def tokenize_query(query: str) -> list[str]:
    """Lowercase *query* and split it on whitespace."""
    return query.lower().split()


def score_file(
    node: Node,
    tokens: Sequence[str],
    weights: RankingWeights = DEFAULT_WEIGHTS,
) -> int:
    """Score one file against already-tokenized query terms."""
    name = node.name.lower()
    path = node.path.lower()
    content = (node.content or "").lower()

    score = 0
    if "readme" in name:
        score += weights.readme_bonus
    if any(manifest in name for manifest in weights.manifest_names):
        score += weights.manifest_bonus

    for token in tokens:
        if len(token) < weights.min_token_length:
            continue
        if token in name:
            score += weights.filename_bonus
        if token in path:
            score += weights.path_bonus
        occurrences = len(re.findall(re.escape(token), content))
        score += min(occurrences, weights.content_cap)
    return score


def rank(
    files: Sequence[Node],
    query: str,
    weights: RankingWeights = DEFAULT_WEIGHTS,
) -> list[ScoredFile]:
    """Order *files* by relevance to *query*, best first.

    A query with no tokens falls back to the first
    ``weights.generic_file_count`` files, unscored, in input order. Ties keep
    their input order.
    """
    tokens = tokenize_query(query)
    if not tokens:
        return [
            ScoredFile(path=node.path, score=0)
            for node in files[: weights.generic_file_count]
        ]
    scored = [
        ScoredFile(path=node.path, score=score_file(node, tokens, weights))
        for node in files
    ]
    scored.sort(key=lambda item: item.score, reverse=True)
    return scored[: weights.max_files]


def context_candidates(files: Iterable[Node]) -> list[Node]:
    """Files eligible as context: selected and with content loaded."""
    return [
        node
        for node in files
        if node.is_file and node.is_selected and isinstance(node.content, str)
    ]


def build_context(
    tree_digest: str,
    files_by_path: Mapping[str, Node],
    ranked: Sequence[ScoredFile],
) -> str:
    """Assemble the context block sent alongside a question."""
    context = f"Directory Structure:\n{tree_digest}\n\n"
    if not ranked:
        return context + NO_MATCH_NOTICE

    context += "Selected Relevant Files for Context:\n"
    for item in ranked:
        content = files_by_path[item.path].content or ""
        context += f"\n--- START OF FILE {item.path} ---\n"
        context += content
        context += f"\n--- END OF FILE {item.path} ---\n"
    return context


def build_prompt(context: str, query: str) -> str:
    return f"[Context Data]\n{context}\n\n[User Question]\n{query}"

"""Answer generation: rank files, assemble context, and ask a provider."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from gittoken.lib.ai_providers import PROVIDERS
from gittoken.lib.ai_providers.types import AIProvider
from gittoken.lib.default_prompts import (
    ANALYST_SYSTEM_INSTRUCTION,
    EMPTY_RESPONSE_TEXT,
)
from gittoken.lib.models import ChatMessage, Node, ScoredFile
from gittoken.lib.ranker import (
    DEFAULT_WEIGHTS,
    RankingWeights,
    build_context,
    build_prompt,
    context_candidates,
    rank,
)

__all__ = ["AnalysisResult", "Analyst", "AnalystUnavailableError"]

logger = logging.getLogger(__name__)


class AnalystUnavailableError(RuntimeError):
    """Raised when the answer-generation provider has no credentials."""


@dataclass(frozen=True)
class AnalysisResult:
    """Generated answer plus the files that were used as context."""

    text: str
    relevant_files: tuple[ScoredFile, ...] = field(default_factory=tuple)


class Analyst:
    """Forward a question and its ranked repository context to a provider."""

    def __init__(
        self,
        provider: AIProvider,
        *,
        model: str | None = None,
        weights: RankingWeights = DEFAULT_WEIGHTS,
    ) -> None:
        self.provider = provider
        self.model = None if model in (None, "", "default") else model
        self.weights = weights

    @classmethod
    def from_name(
        cls,
        provider_name: str,
        *,
        model: str | None = None,
        weights: RankingWeights = DEFAULT_WEIGHTS,
    ) -> Analyst:
        try:
            provider = PROVIDERS[provider_name]
        except KeyError as exc:
            available = ", ".join(sorted(PROVIDERS))
            msg = f"Unknown provider {provider_name!r} (available: {available})"
            raise ValueError(msg) from exc
        return cls(provider, model=model, weights=weights)

    @property
    def available(self) -> bool:
        return self.provider.is_configured()

    def prepare(
        self,
        files: Sequence[Node],
        tree_digest: str,
        query: str,
    ) -> tuple[str, list[ScoredFile]]:
        """Rank candidate files and build the augmented prompt."""
        candidates = context_candidates(files)
        ranked = rank(candidates, query, self.weights)
        by_path = {node.path: node for node in candidates}
        context = build_context(tree_digest, by_path, ranked)
        return build_prompt(context, query), ranked

    async def analyze(
        self,
        files: Sequence[Node],
        tree_digest: str,
        query: str,
        history: Sequence[ChatMessage] = (),
    ) -> AnalysisResult:
        """Answer *query* about the repository.

        Raises:
            AnalystUnavailableError: If the provider has no credentials.
        """
        if not self.available:
            env_var = self.provider.api_key_env_var
            raise AnalystUnavailableError(f"{env_var} not configured")

        prompt, ranked = self.prepare(files, tree_digest, query)
        logger.info(
            "Asking %s with %d context files", self.provider.name, len(ranked)
        )
        messages = [{"role": turn.role, "content": turn.text} for turn in history]
        messages.append({"role": "user", "content": prompt})
        response = await self.provider.acomplete(
            messages,
            model=self.model,
            system=ANALYST_SYSTEM_INSTRUCTION,
        )
        text = self.provider.response_text(response) or EMPTY_RESPONSE_TEXT
        return AnalysisResult(text=text, relevant_files=tuple(ranked))

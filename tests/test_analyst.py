"""Tests for gittoken.lib.analyst."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from gittoken.lib.ai_providers.types import AIProvider
from gittoken.lib.analyst import Analyst, AnalystUnavailableError
from gittoken.lib.default_prompts import (
    ANALYST_SYSTEM_INSTRUCTION,
    EMPTY_RESPONSE_TEXT,
)
from gittoken.lib.models import ChatMessage, Node
from gittoken.lib.ranker import RankingWeights


class _RecordingProvider(AIProvider):
    name = "recording"
    api_key_env_var = "RECORDING_API_KEY"
    default_model = "recording-model"
    install_hint = "none"

    def __init__(self, reply: str = "the answer", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.reply = reply
        self.calls: list[dict[str, Any]] = []

    def _build_inner(self) -> Any:
        return object()

    def _complete_impl(
        self,
        *,
        inner: Any,
        messages: list[dict[str, str]],
        model: str,
        system: str | None,
        **kwargs: Any,
    ) -> Any:
        self.calls.append({"messages": messages, "model": model, "system": system})
        return self.reply

    def response_text(self, response: Any) -> str:
        return response


def _file(path: str, content: str | None = "", selected: bool = True) -> Node:
    return Node(
        path=path,
        name=path.rsplit("/", 1)[-1],
        type="file",
        is_selected=selected,
        content=content,
    )


@pytest.fixture()
def provider(monkeypatch: pytest.MonkeyPatch) -> _RecordingProvider:
    monkeypatch.setenv("RECORDING_API_KEY", "key")
    return _RecordingProvider()


class TestPrepare:
    def test_prompt_contains_ranked_context(self, provider) -> None:
        analyst = Analyst(provider)
        files = [
            _file("README.md", "# Demo"),
            _file("src/parser.ts", "export function parse() {}"),
        ]
        prompt, ranked = analyst.prepare(files, "TREE", "parser")

        assert [item.path for item in ranked] == ["src/parser.ts", "README.md"]
        assert prompt.startswith("[Context Data]\nDirectory Structure:\nTREE\n")
        assert "--- START OF FILE src/parser.ts ---" in prompt
        assert prompt.endswith("[User Question]\nparser")
        assert prompt.index("src/parser.ts") < prompt.index("README.md")

    def test_unselected_and_unfetched_files_excluded(self, provider) -> None:
        analyst = Analyst(provider)
        files = [
            _file("a.py", "x"),
            _file("b.py", None),
            _file("c.py", "y", selected=False),
        ]
        _, ranked = analyst.prepare(files, "TREE", "anything")
        assert [item.path for item in ranked] == ["a.py"]

    def test_weights_limit_context(self, provider) -> None:
        analyst = Analyst(provider, weights=RankingWeights(max_files=1))
        files = [_file("a.py", "x"), _file("b.py", "y")]
        _, ranked = analyst.prepare(files, "TREE", "something")
        assert len(ranked) == 1


class TestAnalyze:
    def test_sends_history_then_prompt(self, provider) -> None:
        analyst = Analyst(provider, model="custom")
        history = [
            ChatMessage(role="user", text="first"),
            ChatMessage(role="model", text="Error analyzing: boom", is_error=True),
        ]

        result = asyncio.run(
            analyst.analyze([_file("a.py", "x")], "TREE", "what?", history)
        )

        assert result.text == "the answer"
        assert [item.path for item in result.relevant_files] == ["a.py"]
        call = provider.calls[0]
        assert call["model"] == "custom"
        assert call["system"] == ANALYST_SYSTEM_INSTRUCTION
        assert [m["role"] for m in call["messages"]] == ["user", "model", "user"]
        assert call["messages"][1]["content"] == "Error analyzing: boom"
        assert call["messages"][2]["content"].endswith("[User Question]\nwhat?")

    def test_default_model_resolves_to_provider_default(self, provider) -> None:
        analyst = Analyst(provider, model="default")
        asyncio.run(analyst.analyze([], "TREE", "q?"))
        assert provider.calls[0]["model"] == "recording-model"

    def test_empty_reply_gets_placeholder(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("RECORDING_API_KEY", "key")
        analyst = Analyst(_RecordingProvider(reply=""))
        result = asyncio.run(analyst.analyze([], "TREE", "q?"))
        assert result.text == EMPTY_RESPONSE_TEXT

    def test_missing_credentials(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("RECORDING_API_KEY", raising=False)
        analyst = Analyst(_RecordingProvider())
        assert analyst.available is False
        with pytest.raises(
            AnalystUnavailableError, match="RECORDING_API_KEY not configured"
        ):
            asyncio.run(analyst.analyze([], "TREE", "q?"))


class TestFromName:
    def test_known_provider(self) -> None:
        analyst = Analyst.from_name("openai", model="gpt-test")
        assert analyst.provider.name == "openai"
        assert analyst.model == "gpt-test"

    def test_weights_passed_through(self) -> None:
        weights = RankingWeights(max_files=3)
        analyst = Analyst.from_name("anthropic", weights=weights)
        assert analyst.weights is weights
        assert analyst.model is None

    def test_unknown_provider(self) -> None:
        with pytest.raises(ValueError, match="Unknown provider 'nope'"):
            Analyst.from_name("nope")

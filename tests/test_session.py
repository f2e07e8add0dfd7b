"""Tests for gittoken.lib.session."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from gittoken.lib.ai_providers.types import AIProvider
from gittoken.lib.analyst import Analyst
from gittoken.lib.config import Config
from gittoken.lib.fetcher import FETCH_ERROR_PLACEHOLDER
from gittoken.lib.github import RepoNotFoundError
from gittoken.lib.models import Entry, RepoDetails
from gittoken.lib.session import IngestionSuperseded, IngestSession


class _FakeSource:
    """In-memory repository listing keyed by ``owner/repo``."""

    def __init__(self, repos: dict[str, dict[str, str]]) -> None:
        self.repos = repos
        self.failing: set[str] = set()
        self.blob_calls: list[str] = []

    async def aget_repo_details(self, owner: str, repo: str) -> RepoDetails:
        await asyncio.sleep(0)
        if f"{owner}/{repo}" not in self.repos:
            raise RepoNotFoundError("Repository not found (404).")
        return RepoDetails(owner=owner, name=repo, default_branch="main")

    async def aget_repo_tree(
        self, owner: str, repo: str, branch: str
    ) -> list[Entry]:
        await asyncio.sleep(0)
        files = self.repos[f"{owner}/{repo}"]
        return [
            Entry(
                path=path,
                type="file",
                size=len(text),
                sha=f"{owner}/{repo}:{path}",
            )
            for path, text in files.items()
        ]

    async def aget_file_content(self, owner: str, repo: str, sha: str) -> str:
        await asyncio.sleep(0)
        self.blob_calls.append(sha)
        if sha in self.failing:
            raise RuntimeError("network down")
        _, path = sha.split(":", 1)
        return self.repos[f"{owner}/{repo}"][path]


class _EchoProvider(AIProvider):
    name = "echo"
    api_key_env_var = "ECHO_API_KEY"
    default_model = "echo-model"
    install_hint = "none"

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.calls: list[list[dict[str, str]]] = []
        self.fail_with: Exception | None = None

    def _build_inner(self) -> Any:
        return object()

    def _complete_impl(self, *, inner, messages, model, system, **kwargs):
        self.calls.append(messages)
        if self.fail_with is not None:
            raise self.fail_with
        return f"answer #{len(self.calls)}"

    def response_text(self, response: Any) -> str:
        return response


REPOS = {
    "octo/demo": {
        "README.md": "# Demo",
        "src/parser.py": "def parse(): ...",
        "docs/guide.md": "Guide",
    },
    "octo/other": {"main.go": "package main"},
}


@pytest.fixture()
def source() -> _FakeSource:
    return _FakeSource(REPOS)


@pytest.fixture()
def provider(monkeypatch: pytest.MonkeyPatch) -> _EchoProvider:
    monkeypatch.setenv("ECHO_API_KEY", "key")
    return _EchoProvider()


class TestIngest:
    def test_ingest_renders_digest(self, source: _FakeSource) -> None:
        reports: list[tuple[int, str]] = []
        session = IngestSession(
            source, progress=lambda pct, status: reports.append((pct, status))
        )

        digest = asyncio.run(session.ingest("octo", "demo"))

        assert session.details.full_name == "octo/demo"
        assert "File: /src/parser.py" in digest.content
        assert "def parse(): ..." in digest.content
        assert digest.full.startswith("Repository: octo/demo\nFiles analyzed: 3\n")
        assert session.loading is False
        assert session.error is None
        assert session.progress == 100
        percents = [pct for pct, _ in reports]
        assert percents[:3] == [5, 20, 40]
        assert percents == sorted(percents)
        assert percents[-1] == 100

    def test_failed_blob_uses_placeholder(self, source: _FakeSource) -> None:
        source.failing.add("octo/demo:README.md")
        session = IngestSession(source)
        digest = asyncio.run(session.ingest("octo", "demo"))
        assert FETCH_ERROR_PLACEHOLDER in digest.content
        assert "def parse(): ..." in digest.content

    def test_not_found_sets_error(self, source: _FakeSource) -> None:
        session = IngestSession(source)
        with pytest.raises(RepoNotFoundError):
            asyncio.run(session.ingest("octo", "missing"))
        assert session.error == "Repository not found (404)."
        assert session.details is None
        assert session.loading is False

    def test_transport_failure_resets_loading(
        self, source: _FakeSource, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def unreachable(owner: str, repo: str) -> RepoDetails:
            raise ConnectionError("network unreachable")

        monkeypatch.setattr(source, "aget_repo_details", unreachable)
        session = IngestSession(source)

        with pytest.raises(ConnectionError):
            asyncio.run(session.ingest("octo", "demo"))

        assert session.loading is False
        assert session.error == "network unreachable"
        assert session.details is None
        assert session.status == ""

    def test_deselected_extensions_are_not_fetched(
        self, source: _FakeSource
    ) -> None:
        session = IngestSession(source, deselected_extensions=[".MD"])
        digest = asyncio.run(session.ingest("octo", "demo"))
        assert source.blob_calls == ["octo/demo:src/parser.py"]
        assert "README.md" not in digest.tree
        assert session.state.stats().total_files == 3

    def test_extra_ignored_extensions(self, source: _FakeSource) -> None:
        session = IngestSession(source, extra_ignored_extensions=[".md"])
        asyncio.run(session.ingest("octo", "demo"))
        assert [node.path for node in session.state.files] == ["src/parser.py"]

    def test_batch_size_from_config(self, source: _FakeSource) -> None:
        session = IngestSession(source, config=Config(batch_size=2))
        assert session._fetcher.batch_size == 2

    def test_new_ingest_discards_previous_state(
        self, source: _FakeSource, provider: _EchoProvider
    ) -> None:
        session = IngestSession(source, analyst=Analyst(provider))

        async def scenario() -> None:
            await session.ingest("octo", "demo")
            await session.ask("what is this?")
            await session.ingest("octo", "other")

        asyncio.run(scenario())

        assert session.details.full_name == "octo/other"
        assert session.history == []
        assert [node.path for node in session.state.files] == ["main.go"]

    def test_superseded_ingest_cannot_overwrite(self, source: _FakeSource) -> None:
        session = IngestSession(source)

        async def scenario() -> tuple[Any, Any]:
            first = asyncio.create_task(session.ingest("octo", "demo"))
            await asyncio.sleep(0)
            second = asyncio.create_task(session.ingest("octo", "other"))
            return await asyncio.gather(first, second, return_exceptions=True)

        first, second = asyncio.run(scenario())

        assert isinstance(first, IngestionSuperseded)
        assert second.tree.endswith("main.go\n")
        assert session.details.full_name == "octo/other"
        assert [node.path for node in session.state.files] == ["main.go"]


class TestSelectionAndDigest:
    def test_generate_digest_requires_ingest(self, source: _FakeSource) -> None:
        session = IngestSession(source)
        with pytest.raises(ValueError, match="ingest a repository first"):
            asyncio.run(session.generate_digest())

    def test_toggle_marks_stale_and_regenerate_fetches_new_files(
        self, source: _FakeSource
    ) -> None:
        session = IngestSession(source, deselected_extensions=[".md"])

        async def scenario():
            await session.ingest("octo", "demo")
            assert session.toggle_extension(".md") is True
            assert session.digest_is_stale is True
            return await session.generate_digest()

        digest = asyncio.run(scenario())

        assert session.digest_is_stale is False
        assert "# Demo" in digest.content
        assert sorted(source.blob_calls) == [
            "octo/demo:README.md",
            "octo/demo:docs/guide.md",
            "octo/demo:src/parser.py",
        ]

    def test_regenerate_does_not_refetch(self, source: _FakeSource) -> None:
        session = IngestSession(source)

        async def scenario():
            await session.ingest("octo", "demo")
            session.toggle("src", False)
            return await session.generate_digest()

        digest = asyncio.run(scenario())

        assert len(source.blob_calls) == 3
        assert "parser.py" not in digest.tree
        assert "Files analyzed: 2" in digest.full

    def test_toggle_unknown_extension_is_not_stale(
        self, source: _FakeSource
    ) -> None:
        session = IngestSession(source)
        asyncio.run(session.ingest("octo", "demo"))
        assert session.toggle_extension(".rs") is None
        assert session.digest_is_stale is False


class TestAsk:
    def test_answer_appended_with_sources(
        self, source: _FakeSource, provider: _EchoProvider
    ) -> None:
        session = IngestSession(source, analyst=Analyst(provider))

        async def scenario():
            await session.ingest("octo", "demo")
            return await session.ask("how does the parser work?")

        reply = asyncio.run(scenario())

        assert reply.text == "answer #1"
        assert reply.is_error is False
        assert reply.relevant_files[0].path == "src/parser.py"
        assert [turn.role for turn in session.history] == ["user", "model"]

    def test_history_is_sent_on_follow_up(
        self, source: _FakeSource, provider: _EchoProvider
    ) -> None:
        session = IngestSession(source, analyst=Analyst(provider))

        async def scenario():
            await session.ingest("octo", "demo")
            await session.ask("first question")
            await session.ask("second question")

        asyncio.run(scenario())

        second_call = provider.calls[1]
        assert [m["role"] for m in second_call] == ["user", "model", "user"]
        assert second_call[0]["content"] == "first question"
        assert second_call[1]["content"] == "answer #1"

    def test_failure_becomes_error_turn(
        self, source: _FakeSource, provider: _EchoProvider
    ) -> None:
        provider.fail_with = RuntimeError("quota exceeded")
        session = IngestSession(source, analyst=Analyst(provider))

        async def scenario():
            await session.ingest("octo", "demo")
            return await session.ask("anything")

        reply = asyncio.run(scenario())

        assert reply.is_error is True
        assert reply.text == "Error analyzing: quota exceeded"
        assert len(session.history) == 2

    def test_missing_credentials_become_error_turn(
        self, source: _FakeSource, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("ECHO_API_KEY", raising=False)
        session = IngestSession(source, analyst=Analyst(_EchoProvider()))

        async def scenario():
            await session.ingest("octo", "demo")
            return await session.ask("anything")

        reply = asyncio.run(scenario())

        assert reply.is_error is True
        assert reply.text == "Error analyzing: ECHO_API_KEY not configured"

    def test_no_analyst_becomes_error_turn(self, source: _FakeSource) -> None:
        session = IngestSession(source)

        async def scenario():
            await session.ingest("octo", "demo")
            return await session.ask("anything")

        reply = asyncio.run(scenario())
        assert reply.is_error is True

    def test_ask_before_ingest(self, source: _FakeSource) -> None:
        session = IngestSession(source)
        with pytest.raises(ValueError, match="ingest a repository first"):
            asyncio.run(session.ask("hello?"))

    def test_blank_question(self, source: _FakeSource) -> None:
        session = IngestSession(source)
        with pytest.raises(ValueError, match="must not be empty"):
            asyncio.run(session.ask("   "))

    def test_stale_digest_regenerated_before_answer(
        self, source: _FakeSource, provider: _EchoProvider
    ) -> None:
        session = IngestSession(
            source, analyst=Analyst(provider), deselected_extensions=[".md"]
        )

        async def scenario():
            await session.ingest("octo", "demo")
            session.toggle_extension(".md")
            return await session.ask("guide")

        reply = asyncio.run(scenario())

        assert session.digest_is_stale is False
        assert "docs/guide.md" in [item.path for item in reply.relevant_files]
        assert "Guide" in provider.calls[0][-1]["content"]

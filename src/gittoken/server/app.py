"""FastAPI application for app mode.

Exposes the digest pipeline and repository chat over HTTP. ``/api/analyze``
keeps the camelCase wire format the browser client sends.
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from gittoken.lib.ai_providers import DEFAULT_PROVIDER, PROVIDERS
from gittoken.lib.analyst import Analyst, AnalystUnavailableError
from gittoken.lib.config import Config
from gittoken.lib.github import GitHubClient, GitHubError, parse_repo_reference
from gittoken.lib.models import ChatMessage, Node
from gittoken.lib.ranker import RankingWeights
from gittoken.lib.session import IngestSession
from gittoken.lib.tree import TreeBuildError, extension_of

logger = logging.getLogger(__name__)

app = FastAPI(
    title="gittoken",
    description="Turn GitHub repositories into LLM-ready digests and chat.",
    version="0.1.0",
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class FilePayload(_CamelModel):
    """One flat file entry as sent by the client."""

    name: str
    path: str
    content: str | None = None
    is_checked: bool = Field(default=True, alias="isChecked")

    def to_node(self) -> Node:
        return Node(
            path=self.path,
            name=self.name,
            type="file",
            extension=extension_of(self.name),
            is_selected=self.is_checked,
            content=self.content,
        )


class HistoryTurn(_CamelModel):
    """A prior chat turn."""

    role: Literal["user", "model"]
    text: str


class AnalyzeRequest(_CamelModel):
    """Request body for ``/api/analyze``."""

    files: list[FilePayload] = Field(default_factory=list)
    tree_structure: str = Field(default="", alias="treeStructure")
    user_prompt: str = Field(alias="userPrompt")
    history: list[HistoryTurn] = Field(default_factory=list)
    provider: str = DEFAULT_PROVIDER
    model: str | None = None

    @field_validator("provider")
    @classmethod
    def _validate_provider(cls, value: str) -> str:
        if value not in PROVIDERS:
            available = ", ".join(sorted(PROVIDERS))
            raise ValueError(f"unknown provider (available: {available})")
        return value


class RelevantFile(BaseModel):
    path: str
    score: int


class AnalyzeResponse(_CamelModel):
    """Response for ``/api/analyze``."""

    text: str
    relevant_files: list[RelevantFile] = Field(alias="relevantFiles")


class DigestRequest(_CamelModel):
    """Request body for ``/api/digest``."""

    repo: str
    exclude_extensions: list[str] = Field(
        default_factory=list, alias="excludeExtensions"
    )

    @field_validator("repo")
    @classmethod
    def _validate_repo(cls, value: str) -> str:
        parse_repo_reference(value)
        return value


class DigestResponse(_CamelModel):
    """Response for ``/api/digest``."""

    repository: str
    stats: dict[str, int]
    tree: str
    content: str
    full: str
    markdown_tree: str = Field(alias="markdownTree")


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": message})


@app.get("/health")
def health() -> dict[str, str]:
    """Liveness check."""
    return {"status": "ok"}


@app.post("/api/analyze", response_model=AnalyzeResponse)
async def analyze(request: AnalyzeRequest) -> Any:
    """Rank the client's files against the question and ask the provider."""
    config = Config.from_env()
    analyst = Analyst(
        PROVIDERS[request.provider],
        model=request.model,
        weights=RankingWeights(max_files=config.max_context_files),
    )
    history = [
        ChatMessage(role=turn.role, text=turn.text) for turn in request.history
    ]
    try:
        result = await analyst.analyze(
            [payload.to_node() for payload in request.files],
            request.tree_structure,
            request.user_prompt,
            history,
        )
    except AnalystUnavailableError as exc:
        return _error(500, str(exc))
    except Exception as exc:
        logger.exception("Analyze request failed")
        return _error(500, f"Error: {exc}")
    return AnalyzeResponse(
        text=result.text,
        relevantFiles=[
            RelevantFile(path=item.path, score=item.score)
            for item in result.relevant_files
        ],
    )


@app.post("/api/digest", response_model=DigestResponse)
async def digest(request: DigestRequest) -> Any:
    """Ingest a repository and return every digest view."""
    owner, repo = parse_repo_reference(request.repo)
    config = Config.from_env(overrides={"repo": f"{owner}/{repo}"})
    with GitHubClient() as client:
        session = IngestSession(
            client,
            config=config,
            deselected_extensions=request.exclude_extensions,
        )
        try:
            rendered = await session.ingest(owner, repo)
        except GitHubError as exc:
            status = exc.status if exc.status in (401, 403, 404) else 502
            return _error(status, str(exc))
        except TreeBuildError as exc:
            return _error(422, str(exc))

    details = session.details
    return DigestResponse(
        repository=details.full_name if details else f"{owner}/{repo}",
        stats=session.state.stats().to_dict(),
        tree=rendered.tree,
        content=rendered.content,
        full=rendered.full,
        markdown_tree=rendered.markdown_tree,
    )

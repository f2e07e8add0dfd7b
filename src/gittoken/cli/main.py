"""CLI entry point: ingest a GitHub repo and print or save its digest."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from gittoken.lib.analyst import Analyst
from gittoken.lib.config import Config
from gittoken.lib.github import GitHubClient, GitHubError, parse_repo_reference
from gittoken.lib.models import ChatMessage, Digest
from gittoken.lib.ranker import RankingWeights
from gittoken.lib.session import IngestSession
from gittoken.lib.tree import TreeBuildError

_FORMATS = ("full", "tree", "content", "markdown")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for CLI mode."""
    parser = argparse.ArgumentParser(
        prog="gittoken",
        description="Turn a GitHub repository into an LLM-ready text digest.",
    )
    parser.add_argument(
        "repo",
        help="GitHub repository as owner/repo or a github.com URL.",
    )
    parser.add_argument(
        "--format",
        choices=_FORMATS,
        default="full",
        help="Which digest to emit (default: full).",
    )
    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help=(
            "Write the digest to this file. A directory gets "
            "'<repo>_digest.txt' inside it."
        ),
    )
    parser.add_argument(
        "--exclude-ext",
        action="append",
        default=[],
        metavar="EXT",
        help="Deselect every file with this extension (repeatable, e.g. .md).",
    )
    parser.add_argument(
        "--ignore-ext",
        action="append",
        default=[],
        metavar="EXT",
        help="Drop files with this extension from the tree (repeatable).",
    )
    parser.add_argument(
        "--max-file-size",
        type=int,
        default=None,
        help="Files larger than this many bytes start unselected.",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Number of files fetched concurrently per batch.",
    )
    parser.add_argument(
        "--ask",
        default=None,
        metavar="QUESTION",
        help="Ask a question about the repository after ingesting it.",
    )
    parser.add_argument(
        "--provider",
        default=None,
        help="Answer-generation provider (google, openai, anthropic).",
    )
    parser.add_argument(
        "--model",
        default=None,
        help="AI model to use (overrides env/config).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=None,
        help="Enable verbose output and progress reporting.",
    )
    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _print_progress(percent: int, status: str) -> None:
    if status:
        print(f"[{percent:3d}%] {status}", file=sys.stderr)


def _select_output(digest: Digest, fmt: str) -> str:
    if fmt == "tree":
        return digest.tree
    if fmt == "content":
        return digest.content
    if fmt == "markdown":
        return digest.markdown_tree
    return digest.full


def _resolve_output_path(output: str, repo_name: str) -> Path:
    path = Path(output).expanduser()
    if path.is_dir():
        return path / f"{repo_name}_digest.txt"
    return path


def _format_answer(reply: ChatMessage) -> str:
    lines = [reply.text]
    if reply.relevant_files:
        lines.append("")
        lines.append("Context sources:")
        lines.extend(
            f"  {item.path} (score {item.score})" for item in reply.relevant_files
        )
    return "\n".join(lines)


async def _run(
    session: IngestSession,
    owner: str,
    repo: str,
    question: str | None,
) -> tuple[Digest, ChatMessage | None]:
    digest = await session.ingest(owner, repo)
    reply = await session.ask(question) if question else None
    return digest, reply


def main(argv: list[str] | None = None) -> None:
    """Entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        owner, repo = parse_repo_reference(args.repo)
        config = Config.from_env(
            overrides={
                "repo": f"{owner}/{repo}",
                "provider": args.provider,
                "model": args.model,
                "verbose": args.verbose,
                "batch_size": args.batch_size,
                "max_file_size": args.max_file_size,
            }
        )
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    _configure_logging(config.verbose)

    analyst = None
    if args.ask:
        analyst = Analyst.from_name(
            config.provider,
            model=config.model,
            weights=RankingWeights(max_files=config.max_context_files),
        )

    with GitHubClient() as client:
        session = IngestSession(
            client,
            config=config,
            analyst=analyst,
            progress=_print_progress if config.verbose else None,
            extra_ignored_extensions=args.ignore_ext,
            deselected_extensions=args.exclude_ext,
        )
        try:
            digest, reply = asyncio.run(_run(session, owner, repo, args.ask))
        except (GitHubError, TreeBuildError) as exc:
            print(f"Error: {exc}", file=sys.stderr)
            sys.exit(1)
        except KeyboardInterrupt:
            print("\nInterrupted by user.", file=sys.stderr)
            sys.exit(130)

    text = _select_output(digest, args.format)
    if args.output:
        path = _resolve_output_path(args.output, repo)
        path.write_text(text, encoding="utf-8")
        print(f"Wrote {args.format} digest to {path}")
    elif not args.ask:
        print(text, end="" if text.endswith("\n") else "\n")

    if reply is not None:
        print(_format_answer(reply))
        if reply.is_error:
            sys.exit(1)


if __name__ == "__main__":
    main()

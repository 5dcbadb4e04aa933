"""Command-line access to the knowledge service without the HTTP server.

Usage::

    python -m knowledge_rag.cli upload --tag handbook docs/guide.pdf notes.md

    python -m knowledge_rag.cli repo --url https://github.com/acme/widgets.git \\
        --user alice --token ghp_xxx

    python -m knowledge_rag.cli tags

    python -m knowledge_rag.cli stats

    python -m knowledge_rag.cli ask --provider ollama --model deepseek-r1:1.5b \\
        --tag handbook "How do I reset the device?"

Components are built the same way as the API server, so uploads from the
CLI land in the same collection and tag list.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from knowledge_rag.config.settings import Settings
from knowledge_rag.models.rag import IngestionResult, SourceHandle
from knowledge_rag.models.repository import RepositoryCredentials
from knowledge_rag.utils.errors import KnowledgeBaseError


def _print_ingestion(result: IngestionResult) -> None:
    print("\nIngestion complete:")
    print(f"  Tag:             {result.tag}")
    print(f"  Files processed: {result.files_processed}")
    print(f"  Files failed:    {result.files_failed}")
    print(f"  Chunks stored:   {result.chunks_stored}")
    print(f"  Time:            {result.elapsed:.2f}s")
    for failure in result.failures:
        print(f"    ! {failure.source} [{failure.stage}] {failure.error_type}: {failure.message}")


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_upload(args: argparse.Namespace, components: dict[str, Any]) -> int:
    handles = []
    for name in args.files:
        path = Path(name)
        if not path.is_file():
            print(f"Error: not a file: {name}", file=sys.stderr)
            return 1
        handles.append(SourceHandle.from_path(path))

    print(f"Ingesting {len(handles)} file(s) under tag '{args.tag}'")
    result = await components["ingestion_service"].ingest(args.tag, handles)
    _print_ingestion(result)
    return 0 if result.files_processed or not handles else 1


async def _handle_repo(args: argparse.Namespace, components: dict[str, Any]) -> int:
    credentials = RepositoryCredentials(username=args.user, token=args.token)
    print(f"Analyzing repository: {args.url}")
    result = await components["analysis_service"].analyze(args.url, credentials=credentials, tag=args.tag)
    print(f"  States: {' -> '.join(state.value for state in result.state_history)}")
    print(f"  Files found: {result.files_found}")
    if result.ingestion is None:
        return 1
    _print_ingestion(result.ingestion)
    return 0 if result.ingestion.files_processed else 1


async def _handle_tags(components: dict[str, Any]) -> int:
    tags = await components["tag_registry"].list_tags()
    if not tags:
        print("No knowledge tags registered.")
        return 0
    print("Knowledge tags")
    print("=" * 40)
    for tag in tags:
        print(f"  {tag}")
    return 0


async def _handle_stats(components: dict[str, Any]) -> int:
    stats = await components["vector_store"].get_stats()
    print(f"Total chunks: {stats.total_chunks}")
    for tag, count in sorted(stats.chunks_by_tag.items()):
        print(f"  {tag:<30} {count}")
    return 0


async def _handle_ask(args: argparse.Namespace, components: dict[str, Any]) -> int:
    generation = components["generation_service"]
    fragments = await generation.stream_rag(args.provider, args.model, args.tag, args.message)
    async for fragment in fragments:
        print(fragment, end="", flush=True)
    print()
    return 0


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    # Deferred: building the app wires ChromaDB and the chat clients.
    from knowledge_rag.main import _build_all

    components = _build_all(app_settings)
    try:
        if args.command == "upload":
            return await _handle_upload(args, components)
        if args.command == "repo":
            return await _handle_repo(args, components)
        if args.command == "tags":
            return await _handle_tags(components)
        if args.command == "stats":
            return await _handle_stats(components)
        return await _handle_ask(args, components)
    except KnowledgeBaseError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        await components["tag_registry"].close()
        for provider in components["llm_providers"].values():
            await provider.close()


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the knowledge CLI."""
    parser = argparse.ArgumentParser(
        prog="knowledge_rag.cli",
        description="Manage tagged knowledge bases and ask questions against them.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    upload_parser = subparsers.add_parser("upload", help="Ingest local files under a tag")
    upload_parser.add_argument("--tag", required=True, help="Knowledge tag")
    upload_parser.add_argument("files", nargs="+", help="Files to ingest")

    repo_parser = subparsers.add_parser("repo", help="Clone and ingest a Git repository")
    repo_parser.add_argument("--url", required=True, help="Repository URL")
    repo_parser.add_argument("--user", default="", help="Username for private repositories")
    repo_parser.add_argument("--token", default="", help="Access token for private repositories")
    repo_parser.add_argument("--tag", default=None, help="Knowledge tag (default: project name)")

    subparsers.add_parser("tags", help="List registered knowledge tags")
    subparsers.add_parser("stats", help="Show stored chunk counts per tag")

    ask_parser = subparsers.add_parser("ask", help="Ask a question against a tag")
    ask_parser.add_argument("--provider", default="ollama", help="Chat provider (ollama or openai)")
    ask_parser.add_argument("--model", required=True, help="Model id")
    ask_parser.add_argument("--tag", required=True, help="Knowledge tag")
    ask_parser.add_argument("message", help="The question")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point: parse arguments, build components, dispatch."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    exit_code = asyncio.run(_run(args, app_settings))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()

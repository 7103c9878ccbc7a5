"""Standalone CLI for managing an owner's knowledge base and tracked posts.

Usage::

    python -m autoreply.cli ingest --owner acme --file menu.txt --title "Menu"
    python -m autoreply.cli search --owner acme --query "do you deliver?"
    python -m autoreply.cli list --owner acme
    python -m autoreply.cli channel --owner acme --source 1234 --name "Acme Cafe" --token PAGE_TOKEN
    python -m autoreply.cli track --owner acme --source 1234 --target 1234_5678

Builds its own storage handle and providers from ``Settings``; the web
server does not need to be running.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from autoreply.config.settings import Settings
from autoreply.models.events import Channel, ReplyMode
from autoreply.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from autoreply.providers.events.sqlite_event_store import SQLiteEventStore
from autoreply.providers.storage.database import Database
from autoreply.providers.vector_store.sqlite_vector_store import SQLiteVectorStore
from autoreply.services.chunker import TextChunker
from autoreply.services.ingestion_service import IngestionService
from autoreply.services.retrieval_service import RetrievalEngine
from autoreply.utils.errors import AutoReplyError


async def _open_database(app_settings: Settings) -> Database:
    database = Database(Path(app_settings.database_path))
    await database.initialize()
    return database


async def _handle_ingest(args: argparse.Namespace, app_settings: Settings) -> int:
    """Ingest a text file as one resource."""
    text = Path(args.file).read_text(encoding="utf-8")
    title = args.title or Path(args.file).stem
    print(f"Ingesting {args.file} for owner {args.owner} as {title!r}")

    database = await _open_database(app_settings)
    service = IngestionService(
        chunker=TextChunker(
            max_unit_size=app_settings.chunk_size,
            overlap=app_settings.chunk_overlap,
            unit=app_settings.chunk_unit,
        ),
        embedding_provider=OpenAIEmbeddingProvider(settings=app_settings),
        vector_store=SQLiteVectorStore(database),
        embedding_timeout=app_settings.embedding_timeout_seconds * 3,
    )
    result = await service.ingest(args.owner, title, args.category, text)

    print("\nIngestion complete:")
    print(f"  Resource ID: {result.resource_id}")
    print(f"  Chunks:      {result.chunk_count}")
    print(f"  Time:        {result.ingestion_time:.2f}s")
    return 0


async def _handle_search(args: argparse.Namespace, app_settings: Settings) -> int:
    """Print the top snippets for a query."""
    database = await _open_database(app_settings)
    engine = RetrievalEngine(
        embedding_provider=OpenAIEmbeddingProvider(settings=app_settings),
        vector_store=SQLiteVectorStore(database),
        candidate_window=app_settings.retrieval_candidate_window,
        embedding_timeout=app_settings.embedding_timeout_seconds,
    )
    results = await engine.search(args.owner, args.query, args.top_n)
    if not results:
        print("No matching knowledge.")
        return 0
    for i, snippet in enumerate(results, start=1):
        preview = snippet.content.replace("\n", " ")[:120]
        print(f"#{i} ({snippet.score:.3f}) {preview}")
    return 0


async def _handle_list(args: argparse.Namespace, app_settings: Settings) -> int:
    """List an owner's resources."""
    database = await _open_database(app_settings)
    resources = await SQLiteVectorStore(database).list_resources(args.owner)
    if not resources:
        print(f"No resources for owner {args.owner}.")
        return 0
    print(f"{'ID':>6}  {'CHUNKS':>6}  {'CATEGORY':<12}  TITLE")
    for resource in resources:
        print(
            f"{resource.id:>6}  {resource.chunk_count:>6}  "
            f"{resource.category:<12}  {resource.title or '-'}"
        )
    return 0


async def _handle_channel(args: argparse.Namespace, app_settings: Settings) -> int:
    """Register or update a page for an owner."""
    database = await _open_database(app_settings)
    channel = await SQLiteEventStore(database).upsert_channel(
        Channel(
            source_id=args.source,
            owner_id=args.owner,
            name=args.name,
            access_token=args.token,
            reply_mode=ReplyMode(args.mode),
        )
    )
    print(
        f"Registered page {channel.source_id} ({channel.name}) for {channel.owner_id}, "
        f"replies via {channel.reply_mode.value}"
    )
    return 0


async def _handle_track(args: argparse.Namespace, app_settings: Settings) -> int:
    """Add a post to the owner's tracked targets."""
    database = await _open_database(app_settings)
    store = SQLiteEventStore(database)
    channel = await store.get_channel(args.source)
    if channel is None or channel.owner_id != args.owner:
        print(f"Error: page {args.source} is not registered for {args.owner}", file=sys.stderr)
        return 1
    target = await store.track_target(args.owner, args.source, args.target)
    print(f"Tracking {target.target_id} on page {target.source_id} for {target.owner_id}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m autoreply.cli",
        description="Manage autoreply knowledge and tracked posts.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    ingest_parser = subparsers.add_parser("ingest", help="Ingest a text file")
    ingest_parser.add_argument("--owner", required=True, help="Owner id")
    ingest_parser.add_argument("--file", required=True, help="Path to a UTF-8 text file")
    ingest_parser.add_argument("--title", default=None, help="Title (default: file name)")
    ingest_parser.add_argument("--category", default="other", help="Category tag")

    search_parser = subparsers.add_parser("search", help="Search an owner's knowledge")
    search_parser.add_argument("--owner", required=True, help="Owner id")
    search_parser.add_argument("--query", required=True, help="Query text")
    search_parser.add_argument("--top-n", type=int, default=5, dest="top_n")

    list_parser = subparsers.add_parser("list", help="List an owner's resources")
    list_parser.add_argument("--owner", required=True, help="Owner id")

    channel_parser = subparsers.add_parser("channel", help="Register or update a page")
    channel_parser.add_argument("--owner", required=True, help="Owner id")
    channel_parser.add_argument("--source", required=True, help="Page id")
    channel_parser.add_argument("--name", required=True, help="Business name used in replies")
    channel_parser.add_argument("--token", required=True, help="Page access token")
    channel_parser.add_argument(
        "--mode",
        choices=[mode.value for mode in ReplyMode],
        default=ReplyMode.DIRECT.value,
        help="Reply by direct message or in the comment thread",
    )

    track_parser = subparsers.add_parser("track", help="Track a post for auto-replies")
    track_parser.add_argument("--owner", required=True, help="Owner id")
    track_parser.add_argument("--source", required=True, help="Page id")
    track_parser.add_argument("--target", required=True, help="Post id")

    return parser


_HANDLERS = {
    "ingest": _handle_ingest,
    "search": _handle_search,
    "list": _handle_list,
    "channel": _handle_channel,
    "track": _handle_track,
}


def main(argv: list[str] | None = None) -> None:
    """CLI entry point: parse arguments, run the command, exit with its code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    try:
        exit_code = asyncio.run(_HANDLERS[args.command](args, app_settings))
    except AutoReplyError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Command-line access to the journal embedding store.

Indexes text files, keeps their embeddings in sync, searches them and
reports store statistics. Configuration comes from the environment
(see journal_recall.core.config).
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .core.config import Settings, debug_enabled, validate_config
from .core.exceptions import RecallError
from .util.logging import logger
from .vector.semantic_memory import SemanticMemoryService
from .vector.types import DocumentSource

DOCUMENT_SUFFIXES = {".txt", ".md"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="journal-recall",
        description="Semantic search over journal entries",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s index entry-42 notes/2024-05-01.md      # Embed one entry
  %(prog)s update entry-42 notes/2024-05-01.md     # Re-embed after an edit
  %(prog)s search "weekend with family" --limit 5  # Ranked chunks
  %(prog)s reindex notes/                          # Rebuild from a folder

Environment variables:
- EMBEDDING_DB_PATH=./data/embeddings.db
- EMBED_PROVIDER=hash|features|sentence_transformers|ollama
- SEARCH_LIMIT=10, SEARCH_THRESHOLD=0.5
        """
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (("index", "Embed a document"), ("update", "Re-embed an edited document")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("document_id", help="Document identifier")
        sub.add_argument("path", type=Path, help="Text file holding the document content")
        sub.add_argument("--name", help="Document name (default: file name)")

    delete = subparsers.add_parser("delete", help="Remove a document's embeddings")
    delete.add_argument("document_id", help="Document identifier")

    search = subparsers.add_parser("search", help="Search stored chunks")
    search.add_argument("query", help="Query text")
    search.add_argument("--limit", "-k", type=int, default=None, help="Maximum results")
    search.add_argument("--threshold", "-t", type=float, default=None, help="Minimum similarity")
    search.add_argument("--document", "-d", default=None, help="Only search this document")
    search.add_argument("--unique", "-u", action="store_true", help="Best chunk per document only")

    subparsers.add_parser("stats", help="Show store statistics")
    subparsers.add_parser("health", help="Show subsystem health")

    reindex = subparsers.add_parser("reindex", help="Clear the store and index every .txt/.md file in a folder")
    reindex.add_argument("directory", type=Path, help="Folder of journal files")

    return parser


def load_directory(directory: Path) -> List[DocumentSource]:
    """Documents from a folder; the file stem is the document id."""
    if not directory.is_dir():
        raise FileNotFoundError(f"Not a directory: {directory}")

    documents = []
    for path in sorted(directory.iterdir()):
        if path.is_file() and path.suffix.lower() in DOCUMENT_SUFFIXES:
            documents.append(DocumentSource(
                document_id=path.stem,
                document_name=path.name,
                content=path.read_text(encoding="utf-8", errors="replace"),
            ))
    return documents


def _print_progress(current: int, total: int) -> None:
    print(f"  [{current}/{total}]", end="\r" if current < total else "\n", flush=True)


async def run(args: argparse.Namespace, settings: Settings) -> int:
    async with SemanticMemoryService.from_settings(settings) as service:
        if args.command in ("index", "update"):
            content = args.path.read_text(encoding="utf-8", errors="replace")
            name = args.name or args.path.name
            if args.command == "index":
                ids = await service.store_document_embeddings(args.document_id, name, content)
            else:
                ids = await service.update_document_embeddings(args.document_id, name, content)
            print(f"✓ Stored {len(ids)} chunk(s) for {args.document_id}")

        elif args.command == "delete":
            removed = await service.delete_document_embeddings(args.document_id)
            print(f"✓ Removed {removed} record(s) for {args.document_id}")

        elif args.command == "search":
            hits = await service.search(
                args.query,
                limit=args.limit,
                threshold=args.threshold,
                document_id=args.document,
                unique_documents=args.unique,
            )
            if not hits:
                print("No matches.")
            for rank, hit in enumerate(hits, start=1):
                excerpt = hit.text if len(hit.text) <= 120 else hit.text[:117] + "..."
                print(f"{rank}. {hit.document_name} #{hit.chunk_index} (score={hit.score:.3f})")
                print(f"   {excerpt}")

        elif args.command == "stats":
            print(json.dumps((await service.stats()).to_dict(), indent=2))

        elif args.command == "health":
            print(json.dumps(await service.health(), indent=2, default=str))

        elif args.command == "reindex":
            documents = load_directory(args.directory)
            print(f"Re-indexing {len(documents)} document(s) from {args.directory}")
            results = await service.reindex_all(documents, progress_callback=_print_progress)
            print(f"✓ Indexed {len(results)} document(s), {sum(len(v) for v in results.values())} chunk(s)")

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if debug_enabled():
        logger.logger.setLevel(logging.DEBUG)

    settings = Settings.from_env()
    issues = validate_config(settings)
    if issues:
        for issue in issues:
            print(f"ERROR: {issue}")
        return 1

    try:
        return asyncio.run(run(args, settings))
    except RecallError as e:
        print(f"ERROR: {e}")
        return 1
    except (OSError, ValueError) as e:
        print(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

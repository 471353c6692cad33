"""CLI entry point for docindex."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Literal, Optional, cast

from docindex.config import ChunkingConfig, IndexConfig, ParseConfig, PipelineConfig
from docindex.errors import ConfigError, QueryError
from docindex.loaders import get_storage
from docindex.models import ParseMode

logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
)
logger = logging.getLogger(__name__)


def _open(store: str, model: Optional[str] = None, config: Optional[PipelineConfig] = None, load: bool = True):
    # Import here to avoid loading torch for --help
    from docindex.embedders import SentenceTransformerEmbedder
    from docindex.service import DocIndex

    logger.info("Loading embedding model...")
    return DocIndex(store, SentenceTransformerEmbedder(model), config, load=load)


def ingest(
    source: str,
    output: str,
    prefix: str = "",
    mode: str = "ocr",
    chunk_size: int = 1512,
    overlap: int = 256,
    workers: int = 4,
    target_lag: float = 0.0,
    model: Optional[str] = None,
) -> None:
    """Ingest a folder or zip into a store.

    Args:
        source: Path to folder or zip file
        output: Path of the store file (created if missing)
        prefix: Only ingest paths starting with this prefix
        mode: Parse mode for scanned/structured documents (ocr or layout)
        chunk_size: Target chunk size in characters
        overlap: Characters shared by consecutive chunks
        workers: Documents processed concurrently
        target_lag: Seconds an update may stay invisible to queries
        model: sentence-transformers model name
    """
    storage = get_storage(source)
    if storage is None:
        logger.error(f"Cannot process: {source}")
        logger.error("Supported inputs: folders, .zip files")
        sys.exit(1)

    try:
        config = PipelineConfig(
            max_workers=workers,
            parse=ParseConfig(mode=ParseMode(mode)),
            chunking=ChunkingConfig(target_size=chunk_size, overlap=overlap),
            index=IndexConfig(target_lag=target_lag),
        )
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(2)

    logger.info(f"Ingesting {source} -> {output}")
    with _open(output, model, config) as docindex:
        report = docindex.ingest(storage, prefix)

    for outcome in report.outcomes:
        if outcome.error:
            logger.info(f"  [{outcome.status.value}] {outcome.path}: {outcome.error}")

    logger.info("")
    logger.info(report.summary())


def search(
    store: str,
    query: str,
    limit: int = 10,
    filters: Optional[list[str]] = None,
    as_json: bool = False,
    model: Optional[str] = None,
) -> None:
    """Search a store and print ranked results.

    Args:
        store: Path to the store file
        query: Search query
        limit: Maximum number of results
        filters: key=value attribute filters (repeat a key for any-of)
        as_json: Print the JSON response instead of a listing
        model: sentence-transformers model name
    """
    if not Path(store).exists():
        logger.error(f"Store not found: {store}")
        sys.exit(1)

    filter_map: dict[str, list[str]] = {}
    for item in filters or []:
        key, sep, value = item.partition("=")
        if not sep:
            logger.error(f"Invalid filter (expected key=value): {item}")
            sys.exit(2)
        filter_map.setdefault(key, []).append(value)

    with _open(store, model) as docindex:
        try:
            payload = docindex.engine.preview(
                {"query": query, "filters": filter_map or None, "limit": limit}
            )
        except QueryError as e:
            logger.error(f"Invalid query: {e}")
            sys.exit(2)

    if as_json:
        print(json.dumps(payload, indent=2))
        return

    if not payload["results"]:
        print(f"No results found for: {query}")
        return

    for r in payload["results"]:
        text = r["text"][:200].replace("\n", " ")
        if len(r["text"]) > 200:
            text += "..."
        print(f"{r['rank']}. [{r['score']:.4f}] {r['documentId']} #{r['chunkIndex']}")
        print(f"   {text}")
        print("")


def serve(store: str, transport: str = "stdio", model: Optional[str] = None) -> None:
    """Start MCP server for a store.

    Args:
        store: Path to the store file
        transport: Transport protocol (stdio or sse)
        model: sentence-transformers model name
    """
    store_path = Path(store)
    if not store_path.exists():
        logger.error(f"Store not found: {store}")
        sys.exit(1)

    # Import here to avoid loading MCP unless needed
    from docindex.server import create_mcp_server

    logger.info(f"Serving {store} via {transport}")
    docindex = _open(store, model)
    try:
        mcp = create_mcp_server(store_path, docindex)
        mcp.run(transport=cast(Literal["stdio", "sse", "streamable-http"], transport))
    finally:
        docindex.close()


def rebuild(store: str, model: Optional[str] = None) -> None:
    """Re-embed every chunk of a store from its chunk table."""
    if not Path(store).exists():
        logger.error(f"Store not found: {store}")
        sys.exit(1)

    with _open(store, model, load=False) as docindex:
        count = docindex.rebuild()
    logger.info(f"Rebuilt {count} index entries in {store}")


def info(store: str) -> None:
    """Show information about a store.

    Args:
        store: Path to the store file
    """
    from docindex.storage import DocIndexStore

    store_path = Path(store)
    if not store_path.exists():
        logger.error(f"Store not found: {store}")
        sys.exit(1)

    db = DocIndexStore(store_path)

    metadata = {}
    for key in ["source_type", "created_at", "last_ingest_at", "embedding_model"]:
        value = db.get_metadata(key)
        if value:
            metadata[key] = value

    counts = db.status_counts()
    stats = db.chunk_stats()

    print(f"Store: {store_path.name}")
    print(f"  Size: {store_path.stat().st_size / 1024:.1f} KB")
    print("")
    print("Metadata:")
    for key, value in metadata.items():
        print(f"  {key}: {value}")
    print("")
    print("Documents:")
    for status in ("parsed", "failed", "unparsed"):
        print(f"  {status.capitalize()}: {counts.get(status, 0)}")
    print(f"  Total: {sum(counts.values())}")
    print("")
    print("Chunks:")
    for row in stats:
        print(
            f"  {row['document_id']:<50} {row['num_chunks']:>6} chunks  "
            f"avg {row['avg_chunk_length']:.0f} chars"
        )


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="docindex",
        description="docindex - document ingestion and hybrid search",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # ingest command
    ingest_parser = subparsers.add_parser(
        "ingest",
        help="Parse, chunk and index a folder or zip into a store",
    )
    ingest_parser.add_argument("source", help="Input folder or zip file path")
    ingest_parser.add_argument(
        "-o",
        "--output",
        default="index.docindex",
        help="Store path (default: index.docindex)",
    )
    ingest_parser.add_argument("--prefix", default="", help="Only ingest paths with this prefix")
    ingest_parser.add_argument(
        "--mode",
        choices=[m.value for m in ParseMode],
        default=ParseMode.OCR.value,
        help="Parse mode: ocr for scans, layout for structured documents (default: ocr)",
    )
    ingest_parser.add_argument("--chunk-size", type=int, default=1512, help="Target chunk size in chars")
    ingest_parser.add_argument("--overlap", type=int, default=256, help="Chunk overlap in chars")
    ingest_parser.add_argument("--workers", type=int, default=4, help="Concurrent documents")
    ingest_parser.add_argument(
        "--target-lag",
        type=float,
        default=0.0,
        help="Seconds an update may stay invisible to queries (default: 0)",
    )
    ingest_parser.add_argument("--model", default=None, help="sentence-transformers model")

    # search command
    search_parser = subparsers.add_parser("search", help="Search a store")
    search_parser.add_argument("store", help="Path to store file")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("--limit", type=int, default=10, help="Maximum results")
    search_parser.add_argument(
        "--filter",
        action="append",
        dest="filters",
        metavar="KEY=VALUE",
        help="Attribute filter (repeatable)",
    )
    search_parser.add_argument("--json", action="store_true", help="Print JSON")
    search_parser.add_argument("--model", default=None, help="sentence-transformers model")

    # serve command
    serve_parser = subparsers.add_parser(
        "serve",
        help="Start MCP server for a store",
    )
    serve_parser.add_argument("store", help="Path to store file")
    serve_parser.add_argument(
        "--transport",
        choices=["stdio", "sse"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )
    serve_parser.add_argument("--model", default=None, help="sentence-transformers model")

    # rebuild command
    rebuild_parser = subparsers.add_parser(
        "rebuild",
        help="Re-embed all chunks from the chunk table",
    )
    rebuild_parser.add_argument("store", help="Path to store file")
    rebuild_parser.add_argument("--model", default=None, help="sentence-transformers model")

    # info command
    info_parser = subparsers.add_parser(
        "info",
        help="Show information about a store",
    )
    info_parser.add_argument("store", help="Path to store file")

    args = parser.parse_args()

    if args.command == "ingest":
        ingest(
            args.source,
            args.output,
            prefix=args.prefix,
            mode=args.mode,
            chunk_size=args.chunk_size,
            overlap=args.overlap,
            workers=args.workers,
            target_lag=args.target_lag,
            model=args.model,
        )
    elif args.command == "search":
        search(args.store, args.query, args.limit, args.filters, args.json, args.model)
    elif args.command == "serve":
        serve(args.store, args.transport, args.model)
    elif args.command == "rebuild":
        rebuild(args.store, args.model)
    elif args.command == "info":
        info(args.store)


if __name__ == "__main__":
    main()

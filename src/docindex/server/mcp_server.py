"""FastMCP server exposing a document index."""

import json
from pathlib import Path
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from docindex.errors import QueryError
from docindex.service import DocIndex


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def create_mcp_server(store_path: Path, docindex: Optional[DocIndex] = None) -> FastMCP:
    """Create an MCP server for a specific store.

    Design: 1 process = 1 store. Queries read the index snapshot loaded
    at startup; nothing here mutates the index.

    Args:
        store_path: Path to the store file to serve
        docindex: Already-open index (tests, embedding in other apps)

    Returns:
        Configured FastMCP server instance
    """
    mcp = FastMCP(name="docindex")
    index = docindex or DocIndex(store_path)

    @mcp.tool()
    def ls(prefix: str = "") -> str:
        """List documents in the index.

        Args:
            prefix: Optional path prefix (e.g., "contracts/")

        Returns:
            One line per document with size and parse status
        """
        documents = index.store.list_documents(prefix)
        if not documents:
            return f"No documents found matching '{prefix}'"

        return "\n".join(
            f"{d.path:<60} {_format_size(d.size_bytes):>10} [{d.status.value}]"
            for d in documents
        )

    @mcp.tool()
    def read(path: str) -> str:
        """Read a document's extracted text.

        Args:
            path: Document path (as shown in ls output)

        Returns:
            Extracted structured text, or the parse error for failed documents
        """
        document = index.store.get_document(path)
        if document is None:
            return f"Error: Document not found: {path}"
        if document.error:
            return f"[Parse failed] {path}: {document.error}"

        content = index.store.read_content(path)
        return content.text if content else f"[No content] {path}"

    @mcp.tool()
    def search(query: str, filters: Optional[dict[str, Any]] = None, limit: int = 10) -> str:
        """Hybrid keyword + semantic search across the documents.

        Use this to find relevant passages by exact terms or by concept.

        Args:
            query: Natural language question or keywords
            filters: Optional attribute filter, e.g. {"category": "contracts"}
            limit: Maximum number of results to return (default: 10)

        Returns:
            JSON object {"results": [{chunkId, documentId, score, text, sourceUrl, ...}]}
        """
        try:
            payload = index.engine.preview(
                {"query": query, "filters": filters, "limit": limit}
            )
        except QueryError as e:
            return json.dumps({"error": str(e)})
        return json.dumps(payload, indent=2)

    @mcp.tool()
    def stats() -> str:
        """Chunk statistics per document.

        Returns:
            JSON list of {document_id, num_chunks, avg_chunk_length}
        """
        return json.dumps(index.store.chunk_stats(), indent=2)

    return mcp

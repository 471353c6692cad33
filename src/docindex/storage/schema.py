"""Database schema for docindex stores."""

SCHEMA = """
-- Document metadata: one row per storage path
CREATE TABLE IF NOT EXISTS documents (
    path TEXT PRIMARY KEY,
    size_bytes INTEGER NOT NULL,
    url TEXT NOT NULL,
    content_hash TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'unparsed',
    error TEXT,
    version INTEGER NOT NULL DEFAULT 0,
    fingerprint TEXT,
    updated_at TEXT
);

-- Extracted content: replaced on every successful parse
CREATE TABLE IF NOT EXISTS extracted_content (
    document_id TEXT PRIMARY KEY,
    mode TEXT NOT NULL,
    text TEXT NOT NULL,
    raw_text TEXT NOT NULL,
    headings TEXT NOT NULL,    -- JSON [[level, title, offset], ...]
    pages TEXT NOT NULL        -- JSON [[page, start, end], ...]
);

-- Chunk table: source of truth for the index
CREATE TABLE IF NOT EXISTS chunks (
    chunk_id TEXT PRIMARY KEY,
    document_id TEXT NOT NULL,
    chunk_index INTEGER NOT NULL,
    start_char INTEGER NOT NULL,
    end_char INTEGER NOT NULL,
    text TEXT NOT NULL,
    overlap INTEGER NOT NULL DEFAULT 0,
    headers TEXT NOT NULL,     -- JSON object
    attributes TEXT NOT NULL   -- JSON object
);

-- Index entries: embedding and lexical tokens per chunk
CREATE TABLE IF NOT EXISTS index_entries (
    chunk_id TEXT PRIMARY KEY,
    document_id TEXT NOT NULL,
    embedding BLOB NOT NULL,
    dimension INTEGER NOT NULL,
    tokens TEXT NOT NULL       -- JSON array
);

-- Store-level metadata
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT
);

CREATE INDEX IF NOT EXISTS idx_chunks_document ON chunks(document_id, chunk_index);
CREATE INDEX IF NOT EXISTS idx_entries_document ON index_entries(document_id);
"""

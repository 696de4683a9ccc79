"""
PostgreSQL + pgvector storage

Two tables share one connection pool:

    legislation_chunks   -- embedded chunks, searched by cosine distance
    uploaded_documents   -- text of accepted uploads, scoped to a chat session

Every public method is blocking. Async callers wrap them in
asyncio.to_thread.
"""

import os
import json
import logging
from typing import Optional
from dataclasses import dataclass, asdict

import psycopg2
import psycopg2.pool
from psycopg2.extras import RealDictCursor, execute_values

logger = logging.getLogger(__name__)

STALE_CONNECTION_ERRORS = (psycopg2.OperationalError, psycopg2.InterfaceError)

DEFAULT_DSN = "postgresql://localhost:5432/uk_legal_rag"

CHUNK_COLUMNS = (
    "id", "source_url", "act_title", "legislation_type", "legislation_year",
    "section_context", "chunk_index", "total_chunks", "content", "embedding",
)

DOCUMENT_COLUMNS = (
    "id", "session_id", "user_id", "filename", "file_type", "file_size",
    "extracted_text", "document_type", "summary", "word_count",
    "relevance_assessment", "key_elements", "is_active", "created_at",
)


@dataclass
class VectorStoreConfig:
    connection_string: Optional[str] = None
    table_name: str = "legislation_chunks"
    documents_table: str = "uploaded_documents"
    embedding_dimensions: int = 1536
    pool_min_connections: int = 1
    pool_max_connections: int = 10
    document_ttl_hours: int = 24


@dataclass
class RetrievalCandidate:
    """A chunk returned by a similarity search, with its cosine score."""
    chunk_id: str
    text: str
    score: float
    source_url: str = ""
    act_title: str = ""
    legislation_type: Optional[str] = None
    legislation_year: Optional[int] = None
    section_context: str = "General"
    chunk_index: int = 0

    @classmethod
    def from_row(cls, row: dict) -> "RetrievalCandidate":
        return cls(
            chunk_id=row["chunk_id"],
            text=row["content"],
            score=float(row["score"]),
            source_url=row["source_url"],
            act_title=row["act_title"] or "",
            legislation_type=row["legislation_type"],
            legislation_year=row["legislation_year"],
            section_context=row["section_context"] or "General",
            chunk_index=row["chunk_index"],
        )

    def to_dict(self) -> dict:
        return asdict(self)


def _chunk_row(chunk: dict, embedding: list[float]) -> tuple:
    return (
        chunk["chunk_id"],
        chunk["source_url"],
        chunk.get("act_title", ""),
        chunk.get("legislation_type"),
        chunk.get("legislation_year"),
        chunk.get("section_context", "General"),
        chunk["chunk_index"],
        chunk["total_chunks"],
        chunk["text"],
        embedding,
    )


class VectorStore:
    """
    Legislation index and uploaded-document table over a threaded pool.

    A connection that fails with an operational or interface error is
    treated as stale: the pool is rebuilt and the operation runs once more.
    """

    def __init__(self, config: Optional[VectorStoreConfig] = None):
        self.config = config or VectorStoreConfig()
        self._pool = None
        self._dsn = (
            self.config.connection_string
            or os.getenv("POSTGRES_URL")
            or os.getenv("DATABASE_URL")
            or DEFAULT_DSN
        )

    # -------------------------------------------------------------------------
    # Connections
    # -------------------------------------------------------------------------

    def connect(self) -> None:
        """Open the pool and make sure the vector extension exists."""
        try:
            self._pool = psycopg2.pool.ThreadedConnectionPool(
                minconn=self.config.pool_min_connections,
                maxconn=self.config.pool_max_connections,
                dsn=self._dsn,
                cursor_factory=RealDictCursor,
            )
        except psycopg2.Error as e:
            logger.error(f"Could not open PostgreSQL pool: {e}")
            raise

        logger.info(
            f"PostgreSQL pool ready ({self.config.pool_min_connections}"
            f"-{self.config.pool_max_connections} connections)"
        )
        self._run(lambda cur: cur.execute("CREATE EXTENSION IF NOT EXISTS vector"),
                  "create_extension")

    def close(self) -> None:
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None
            logger.info("PostgreSQL pool closed")

    def _borrow(self):
        if self._pool is None:
            self.connect()
        return self._pool.getconn()

    def _give_back(self, conn, failed: bool = False) -> None:
        if failed:
            try:
                conn.rollback()
            except STALE_CONNECTION_ERRORS:
                pass
        if self._pool is not None:
            self._pool.putconn(conn)

    def _execute_with_retry(self, operation, label: str = "db_operation"):
        """
        Run ``operation(conn)`` on a pooled connection.

        A stale connection triggers one reconnect and a second attempt; any
        other error rolls back and propagates.
        """
        retried = False
        while True:
            conn = self._borrow()
            try:
                result = operation(conn)
            except STALE_CONNECTION_ERRORS as e:
                self._give_back(conn, failed=True)
                if retried:
                    raise
                retried = True
                logger.warning(f"{label}: stale connection ({e}); reconnecting")
                self.close()
                self.connect()
                continue
            except Exception:
                self._give_back(conn, failed=True)
                raise
            self._give_back(conn)
            return result

    def _run(self, statement, label: str):
        """Execute ``statement(cursor)`` and commit, returning its result."""
        def operation(conn):
            with conn.cursor() as cur:
                result = statement(cur)
            conn.commit()
            return result

        return self._execute_with_retry(operation, label)

    # -------------------------------------------------------------------------
    # Schema
    # -------------------------------------------------------------------------

    def initialize_schema(self) -> None:
        """Create both tables and their indexes if missing."""
        chunks = self.config.table_name
        docs = self.config.documents_table
        ddl = f"""
        CREATE TABLE IF NOT EXISTS {chunks} (
            id TEXT PRIMARY KEY,
            source_url TEXT NOT NULL,
            act_title TEXT,
            legislation_type TEXT,
            legislation_year INT,
            section_context TEXT DEFAULT 'General',
            chunk_index INT NOT NULL,
            total_chunks INT NOT NULL,
            content TEXT NOT NULL,
            embedding VECTOR({self.config.embedding_dimensions}),
            created_at TIMESTAMPTZ DEFAULT NOW()
        );
        CREATE INDEX IF NOT EXISTS idx_{chunks}_source ON {chunks}(source_url);
        CREATE INDEX IF NOT EXISTS idx_{chunks}_type_year
            ON {chunks}(legislation_type, legislation_year);
        CREATE INDEX IF NOT EXISTS idx_{chunks}_embedding
            ON {chunks} USING hnsw (embedding vector_cosine_ops);

        CREATE TABLE IF NOT EXISTS {docs} (
            id UUID PRIMARY KEY,
            session_id TEXT NOT NULL,
            user_id TEXT NOT NULL,
            filename TEXT NOT NULL,
            file_type TEXT,
            file_size INT DEFAULT 0,
            extracted_text TEXT NOT NULL,
            document_type TEXT,
            summary TEXT,
            word_count INT DEFAULT 0,
            relevance_assessment JSONB DEFAULT '{{}}',
            key_elements JSONB DEFAULT '[]',
            is_active BOOLEAN DEFAULT TRUE,
            created_at TIMESTAMPTZ DEFAULT NOW()
        );
        CREATE INDEX IF NOT EXISTS idx_{docs}_session
            ON {docs}(session_id, user_id, is_active);
        """
        self._run(lambda cur: cur.execute(ddl), "initialize_schema")
        logger.info("Schema ready")

    # -------------------------------------------------------------------------
    # Legislation chunks
    # -------------------------------------------------------------------------

    def replace_source_chunks(
        self,
        source_url: str,
        chunks: list[dict],
        embeddings: list[list[float]],
    ) -> int:
        """
        Swap every chunk of ``source_url`` for a new set in one transaction.

        Returns the number of chunks removed.
        """
        if len(chunks) != len(embeddings):
            raise ValueError(f"Mismatch: {len(chunks)} chunks, {len(embeddings)} embeddings")
        rows = [_chunk_row(c, e) for c, e in zip(chunks, embeddings)]
        table = self.config.table_name
        insert_sql = f"""
        INSERT INTO {table} ({", ".join(CHUNK_COLUMNS)})
        VALUES %s
        ON CONFLICT (id) DO UPDATE SET
            content = EXCLUDED.content,
            embedding = EXCLUDED.embedding,
            section_context = EXCLUDED.section_context,
            chunk_index = EXCLUDED.chunk_index,
            total_chunks = EXCLUDED.total_chunks
        """

        def statement(cur):
            cur.execute(f"DELETE FROM {table} WHERE source_url = %s", (source_url,))
            removed = cur.rowcount
            if rows:
                execute_values(
                    cur, insert_sql, rows,
                    template="(" + ", ".join(["%s"] * 9) + ", %s::vector)",
                    page_size=500,
                )
            return removed

        removed = self._run(statement, "replace_source_chunks")
        logger.info(f"{source_url}: {removed} chunks replaced by {len(rows)}")
        return removed

    def search(
        self,
        query_embedding: list[float],
        top_k: int = 3,
        legislation_type: Optional[str] = None,
        min_year: Optional[int] = None,
    ) -> list[RetrievalCandidate]:
        """
        Nearest chunks by cosine similarity, best first.

        ``legislation_type`` is an equality filter and ``min_year`` a lower
        bound on legislation_year; both are applied in SQL.
        """
        conditions = []
        filter_values = []
        if legislation_type:
            conditions.append("legislation_type = %s")
            filter_values.append(legislation_type)
        if min_year is not None:
            conditions.append("legislation_year >= %s")
            filter_values.append(min_year)
        where = "WHERE " + " AND ".join(conditions) if conditions else ""

        sql = f"""
        SELECT id AS chunk_id, content, source_url, act_title, legislation_type,
               legislation_year, section_context, chunk_index,
               1 - (embedding <=> %s::vector) AS score
        FROM {self.config.table_name}
        {where}
        ORDER BY embedding <=> %s::vector
        LIMIT %s
        """
        params = [query_embedding, *filter_values, query_embedding, top_k]

        def statement(cur):
            cur.execute(sql, params)
            return [RetrievalCandidate.from_row(row) for row in cur.fetchall()]

        return self._run(statement, "search")

    # -------------------------------------------------------------------------
    # Uploaded documents
    # -------------------------------------------------------------------------

    def insert_uploaded_document(self, record: dict) -> None:
        """Store an accepted upload (an UploadedDocumentRecord dict)."""
        placeholders = ", ".join(["%s::uuid"] + ["%s"] * (len(DOCUMENT_COLUMNS) - 1))
        sql = (
            f"INSERT INTO {self.config.documents_table} ({', '.join(DOCUMENT_COLUMNS)}) "
            f"VALUES ({placeholders})"
        )
        values = dict(
            record,
            file_size=record.get("file_size", 0),
            word_count=record.get("word_count", 0),
            is_active=record.get("is_active", True),
            relevance_assessment=json.dumps(record.get("relevance_assessment", {})),
            key_elements=json.dumps(record.get("key_elements", [])),
        )
        params = tuple(values.get(column) for column in DOCUMENT_COLUMNS)

        self._run(lambda cur: cur.execute(sql, params), "insert_uploaded_document")
        logger.info(f"Stored upload {record['id']} ({record['filename']})")

    def list_uploaded_documents(self, session_id: str, user_id: str) -> list[dict]:
        """Active documents of a session younger than the TTL, newest first."""
        sql = f"""
        SELECT {", ".join(DOCUMENT_COLUMNS)}
        FROM {self.config.documents_table}
        WHERE session_id = %s AND user_id = %s AND is_active = TRUE
          AND created_at > NOW() - make_interval(hours => %s)
        ORDER BY created_at DESC
        """

        def statement(cur):
            cur.execute(sql, (session_id, user_id, self.config.document_ttl_hours))
            return [dict(row, id=str(row["id"])) for row in cur.fetchall()]

        return self._run(statement, "list_uploaded_documents")

    def deactivate_uploaded_document(self, document_id: str, user_id: str) -> bool:
        """Soft delete; False when the user has no such active document."""
        sql = (
            f"UPDATE {self.config.documents_table} SET is_active = FALSE "
            "WHERE id = %s::uuid AND user_id = %s AND is_active = TRUE"
        )

        def statement(cur):
            cur.execute(sql, (document_id, user_id))
            return cur.rowcount > 0

        return self._run(statement, "deactivate_uploaded_document")

    def purge_expired_documents(self) -> int:
        """Hard-delete documents past the TTL and return how many went."""
        sql = (
            f"DELETE FROM {self.config.documents_table} "
            "WHERE created_at <= NOW() - make_interval(hours => %s)"
        )

        def statement(cur):
            cur.execute(sql, (self.config.document_ttl_hours,))
            return cur.rowcount

        removed = self._run(statement, "purge_expired_documents")
        if removed:
            logger.info(f"Purged {removed} expired uploads")
        return removed

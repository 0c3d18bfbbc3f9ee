"""SQLite document store and configuration keyspace.

This is the only place the schema is defined; the crawler, the PDF ingestor,
the API server and the CLI all go through :class:`Database`.
"""

import sqlite3
import threading
from typing import List, Optional

from .models import Document, EmptyDocumentError, STATUS_READY

# app_config key holding the LLM API key managed by admins
API_KEY_CONFIG = "llm_api_key"


class Database:
    def __init__(self, db_path: str = "knowledge.db"):
        self.db_path = db_path
        self._local = threading.local()
        self._conns: List[sqlite3.Connection] = []
        self._lock = threading.Lock()
        self._init_db()

    @property
    def _conn(self) -> sqlite3.Connection:
        if not hasattr(self._local, "conn") or self._local.conn is None:
            # closed from whichever thread calls close()
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            with self._lock:
                self._conns.append(conn)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            self._local.conn = conn
        return self._local.conn

    def _init_db(self):
        conn = self._conn
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS documents (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                filename TEXT NOT NULL,
                content TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'indexing'
                    CHECK (status IN ('indexing', 'ready', 'error')),
                type TEXT NOT NULL DEFAULT 'pdf'
                    CHECK (type IN ('pdf', 'url')),
                url TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_documents_status ON documents(status);

            CREATE TABLE IF NOT EXISTS app_config (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
        """)
        conn.commit()

    def close(self):
        """Close every connection this instance opened, on any thread."""
        with self._lock:
            conns, self._conns = self._conns, []
        for conn in conns:
            conn.close()
        self._local = threading.local()

    @staticmethod
    def _to_document(row: sqlite3.Row) -> Document:
        keys = row.keys()
        return Document(
            id=row["id"],
            filename=row["filename"],
            content=row["content"] if "content" in keys else "",
            status=row["status"],
            type=row["type"],
            url=row["url"],
            created_at=row["created_at"],
        )

    # --- documents ---

    def insert_document(self, doc: Document) -> Document:
        """Persist a new document and return it with id and created_at set."""
        if not doc.content or not doc.content.strip():
            raise EmptyDocumentError(f"Refusing to store empty document: {doc.filename}")

        cur = self._conn.execute(
            """INSERT INTO documents (filename, content, status, type, url)
               VALUES (?, ?, ?, ?, ?)""",
            (doc.filename, doc.content, doc.status, doc.type, doc.url),
        )
        self._conn.commit()
        return self.get_document(cur.lastrowid)

    def get_document(self, doc_id: int) -> Optional[Document]:
        row = self._conn.execute(
            "SELECT * FROM documents WHERE id = ?", (doc_id,)
        ).fetchone()
        return self._to_document(row) if row else None

    def list_documents(self) -> List[Document]:
        """All documents, newest first, without their content."""
        rows = self._conn.execute(
            """SELECT id, filename, status, type, url, created_at
               FROM documents ORDER BY created_at DESC, id DESC"""
        ).fetchall()
        return [self._to_document(r) for r in rows]

    def get_ready_documents(self) -> List[Document]:
        """Documents available for retrieval, in insertion order."""
        rows = self._conn.execute(
            "SELECT * FROM documents WHERE status = ? ORDER BY id",
            (STATUS_READY,),
        ).fetchall()
        return [self._to_document(r) for r in rows]

    def delete_document(self, doc_id: int) -> bool:
        cur = self._conn.execute("DELETE FROM documents WHERE id = ?", (doc_id,))
        self._conn.commit()
        return cur.rowcount > 0

    def get_stats(self) -> dict:
        rows = self._conn.execute(
            """SELECT type, status, COUNT(*) as cnt,
                      COALESCE(SUM(LENGTH(content)), 0) as total_chars
               FROM documents GROUP BY type, status ORDER BY type, status"""
        ).fetchall()

        by_type: dict = {}
        by_status: dict = {}
        total = 0
        total_chars = 0
        for row in rows:
            by_type[row["type"]] = by_type.get(row["type"], 0) + row["cnt"]
            by_status[row["status"]] = by_status.get(row["status"], 0) + row["cnt"]
            total += row["cnt"]
            total_chars += row["total_chars"]

        return {
            "total_documents": total,
            "total_chars": total_chars,
            "by_type": by_type,
            "by_status": by_status,
        }

    # --- configuration keyspace ---

    def get_config_value(self, key: str) -> Optional[str]:
        row = self._conn.execute(
            "SELECT value FROM app_config WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set_config_value(self, key: str, value: str):
        self._conn.execute(
            """INSERT INTO app_config (key, value, updated_at)
               VALUES (?, ?, CURRENT_TIMESTAMP)
               ON CONFLICT(key) DO UPDATE SET value = ?, updated_at = CURRENT_TIMESTAMP""",
            (key, value, value),
        )
        self._conn.commit()

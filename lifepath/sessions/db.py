"""Database layer for the SQL session store.

Supports two backends:
- PostgreSQL (production, URL starting with postgres)
- SQLite (local development, default)

Uses raw SQL via psycopg2 (Postgres) or sqlite3 (SQLite). No ORM: the
session is one JSON document per row.

Thread-safety: Postgres uses a ThreadedConnectionPool for connection reuse.
SQLite uses per-call connections with check_same_thread=False.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


class Database:
    """Connection handling for one database URL."""

    def __init__(self, url: str = "", sqlite_path: Optional[Path] = None):
        self.url = url
        self.sqlite_path = sqlite_path or Path("sessions.db")
        self._pg_pool = None
        self._initialized = False

    @property
    def is_postgres(self) -> bool:
        return self.url.startswith("postgres")

    def _get_pg_pool(self):
        """Get or create the Postgres connection pool (lazy)."""
        if self._pg_pool is None:
            import psycopg2.pool

            self._pg_pool = psycopg2.pool.ThreadedConnectionPool(
                minconn=1,
                maxconn=5,
                dsn=self.url,
            )
            logger.info("PostgreSQL connection pool initialized (1-5 connections)")
        return self._pg_pool

    @contextmanager
    def connection(self):
        """Yield a database connection (Postgres or SQLite).

        Usage:
            with db.connection() as conn:
                cursor = conn.cursor()
                cursor.execute(...)
                conn.commit()
        """
        if self.is_postgres:
            pool = self._get_pg_pool()
            conn = pool.getconn()
            try:
                yield conn
            finally:
                pool.putconn(conn)
        else:
            self.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.sqlite_path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            try:
                yield conn
            finally:
                conn.close()

    def execute(self, sql: str, params: tuple = (), fetch: str = "none") -> Any:
        """Execute a SQL statement.

        Args:
            sql: SQL statement (use %s placeholders; adapted for SQLite)
            params: Parameters tuple
            fetch: "none", "one", "all"

        Returns:
            None for "none", dict for "one", list[dict] for "all"
        """
        adapted_sql = sql if self.is_postgres else sql.replace("%s", "?")

        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(adapted_sql, params)

            if fetch == "one":
                row = cursor.fetchone()
                if row is None:
                    return None
                if self.is_postgres:
                    columns = [desc[0] for desc in cursor.description]
                    return dict(zip(columns, row))
                return dict(row)
            if fetch == "all":
                rows = cursor.fetchall()
                if self.is_postgres:
                    columns = [desc[0] for desc in cursor.description]
                    return [dict(zip(columns, r)) for r in rows]
                return [dict(r) for r in rows]

            conn.commit()
            return None

    def init_db(self) -> None:
        """Create tables if they don't exist."""
        if self._initialized:
            return

        document_type = "JSONB" if self.is_postgres else "TEXT"
        ddl = f"""
        CREATE TABLE IF NOT EXISTS workflow_sessions (
            session_id VARCHAR(100) PRIMARY KEY,
            status VARCHAR(20) NOT NULL DEFAULT 'active',
            document {document_type} NOT NULL,
            created_at VARCHAR(40),
            updated_at VARCHAR(40)
        )
        """
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(ddl)
            conn.commit()

        self._initialized = True
        backend = "PostgreSQL" if self.is_postgres else f"SQLite ({self.sqlite_path})"
        logger.info(f"Session database initialized: {backend}")


def json_dumps(data: Any) -> str:
    """Serialize a document for storage."""
    return json.dumps(data, ensure_ascii=False, default=str)


def json_loads(text: Any) -> Any:
    """Deserialize a stored document."""
    if isinstance(text, dict):
        return text  # Already parsed (Postgres JSONB)
    return json.loads(text)

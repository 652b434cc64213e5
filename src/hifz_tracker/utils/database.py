"""
PostgreSQL-backed key-value store.

Each logical collection is one JSONB row in the kv_store table. There is a
single local writer, so a short-lived connection per operation is enough.
"""

import psycopg2
from psycopg2.extras import RealDictCursor, Json
from contextlib import contextmanager
from typing import Optional, Dict, Any
import logging

from hifz_tracker.config.config import DATABASE_URL

logger = logging.getLogger(__name__)

CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS kv_store (
        key TEXT PRIMARY KEY,
        value JSONB NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
"""


def get_db_connection(database_url: str = None):
    """
    Open a new database connection with dict-like rows.

    Connections must be closed by the caller; use db_cursor() for automatic cleanup.
    """
    return psycopg2.connect(database_url or DATABASE_URL, cursor_factory=RealDictCursor)


@contextmanager
def db_cursor(commit: bool = False, database_url: str = None):
    """Context manager for database operations with automatic resource cleanup.

    Args:
        commit: Whether to commit the transaction (default: False for read operations)
        database_url: Optional override of the configured DATABASE_URL

    Yields:
        cursor: Database cursor with RealDictCursor for dict-like results
    """
    conn = None
    cur = None
    try:
        conn = get_db_connection(database_url)
        cur = conn.cursor()
        yield cur
        if commit:
            conn.commit()
    except Exception as e:
        if conn and commit:
            conn.rollback()
        logger.error(f"Database error: {str(e)}", exc_info=True)
        raise
    finally:
        if cur:
            cur.close()
        if conn:
            conn.close()


def db_execute(query: str, params: Optional[tuple] = None, commit: bool = False,
               database_url: str = None) -> int:
    """Execute a query without returning results (INSERT, UPDATE, DELETE).

    Returns:
        Number of affected rows
    """
    with db_cursor(commit=commit, database_url=database_url) as cur:
        cur.execute(query, params)
        return cur.rowcount


def db_fetch_one(query: str, params: Optional[tuple] = None,
                 database_url: str = None) -> Optional[Dict[str, Any]]:
    """Fetch a single row as a dictionary, or None if there is no row."""
    with db_cursor(database_url=database_url) as cur:
        cur.execute(query, params)
        return cur.fetchone()


class PostgresStore:
    """Key-value store keeping one JSONB document per collection key."""

    def __init__(self, database_url: str = None):
        self.database_url = database_url or DATABASE_URL
        self._table_ready = False

    def _ensure_table(self):
        if not self._table_ready:
            db_execute(CREATE_TABLE_SQL, commit=True, database_url=self.database_url)
            self._table_ready = True
            logger.info("kv_store table ready")

    def read(self, key: str) -> Optional[Any]:
        self._ensure_table()
        row = db_fetch_one("SELECT value FROM kv_store WHERE key = %s", (key,),
                           database_url=self.database_url)
        return row['value'] if row else None

    def write(self, key: str, value: Any) -> None:
        self._ensure_table()
        db_execute("""
            INSERT INTO kv_store (key, value, updated_at)
            VALUES (%s, %s, NOW())
            ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, updated_at = NOW()
        """, (key, Json(value)), commit=True, database_url=self.database_url)

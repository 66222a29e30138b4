"""
Database Connection Management
Process-wide store client: one lazily built connection pool, plus dedicated
autocommit connections for LISTEN channels.
"""

import logging
from contextlib import contextmanager
from typing import Optional

import psycopg2
from psycopg2.extensions import ISOLATION_LEVEL_AUTOCOMMIT
from psycopg2.extras import RealDictCursor
from psycopg2.pool import SimpleConnectionPool

from folio.config import config

logger = logging.getLogger(__name__)


class StoreClient:
    """
    Connection handle to the hosted store. Built once from configuration and
    read-only afterwards.
    """

    def __init__(self, dsn: str, minconn: int = 1, maxconn: int = 5):
        self.dsn = dsn
        self._pool = SimpleConnectionPool(minconn, maxconn, dsn)
        logger.info(f"Store client ready (pool {minconn}-{maxconn})")

    @contextmanager
    def connection(self):
        """Borrow a pooled connection; commit on success, rollback on error."""
        conn = self._pool.getconn()
        try:
            yield conn
            conn.commit()
            logger.debug("Transaction committed")
        except Exception as e:
            conn.rollback()
            logger.error(f"Transaction rolled back due to error: {e}")
            raise
        finally:
            self._pool.putconn(conn)

    def listen_connection(self):
        """Open a dedicated autocommit connection for a change-feed channel."""
        conn = psycopg2.connect(self.dsn)
        conn.set_isolation_level(ISOLATION_LEVEL_AUTOCOMMIT)
        return conn

    def close(self):
        self._pool.closeall()
        logger.info("Store client closed")


_client: Optional[StoreClient] = None


def get_client() -> StoreClient:
    """Return the process-wide store client, constructing it on first use."""
    global _client
    if _client is None:
        _client = StoreClient(config.DATABASE_URL, config.DB_POOL_MIN, config.DB_POOL_MAX)
    return _client


@contextmanager
def get_db_connection():
    """
    Context manager for database connections.

    Usage:
        with get_db_connection() as conn:
            cur = conn.cursor()
            cur.execute("SELECT * FROM blogs")
    """
    with get_client().connection() as conn:
        yield conn


@contextmanager
def get_db_cursor(dict_cursor=True):
    """
    Context manager for database cursor.
    Returns RealDictCursor by default for row-as-dict results.

    Usage:
        with get_db_cursor() as cur:
            cur.execute("SELECT * FROM blogs WHERE id = %s", (blog_id,))
            blog = cur.fetchone()  # Returns dict-like object
    """
    with get_db_connection() as conn:
        cursor_factory = RealDictCursor if dict_cursor else None
        cur = conn.cursor(cursor_factory=cursor_factory)
        try:
            yield cur
        finally:
            cur.close()

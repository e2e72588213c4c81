"""
Database access for Barnbook's ride-day tables.

SQLite (WAL mode) by default; PostgreSQL through a small psycopg2 pool when
DATABASE_URL is set. Modules write SQLite-flavoured SQL with ``?``
placeholders and the PostgreSQL adapter rewrites it on the way through, so
every table module has a single code path.

Each ``get_db()`` block is one transaction: it commits when the block exits
and rolls back if anything inside raises. Multi-statement writes (replacing
the suggested-window set, the tuner's compare-and-swap) rely on that.
"""

import os
import sqlite3
import logging
from contextlib import contextmanager

from config import Config

logger = logging.getLogger(__name__)

DATA_DIR = Config.DATA_DIR
BARNBOOK_DB = os.path.join(DATA_DIR, 'barnbook.db')

_pg_pool = None


def is_postgres():
    return bool(Config.DATABASE_URL)


def _get_pg_pool():
    """Open the connection pool on first use."""
    global _pg_pool
    if _pg_pool is None:
        from psycopg2 import pool
        _pg_pool = pool.ThreadedConnectionPool(minconn=1, maxconn=10, dsn=Config.DATABASE_URL)
        logger.info("PostgreSQL connection pool initialized (1-10 connections)")
    return _pg_pool


def to_postgres_sql(sql):
    """
    Rewrite SQLite SQL for PostgreSQL.

    - ``?`` placeholders become ``%s``
    - ``INTEGER PRIMARY KEY AUTOINCREMENT`` becomes ``SERIAL PRIMARY KEY``
    - ``INSERT ... VALUES`` gains ``RETURNING id`` so callers can read
      ``cursor.lastrowid`` on both backends
    """
    sql = sql.replace('?', '%s').replace('INTEGER PRIMARY KEY AUTOINCREMENT', 'SERIAL PRIMARY KEY')
    stripped = sql.strip().rstrip(';')
    upper = stripped.upper()
    if upper.startswith('INSERT') and ' VALUES' in upper and 'RETURNING' not in upper:
        return stripped + ' RETURNING id'
    return sql


class _PgCursor:
    """sqlite3.Cursor look-alike over a psycopg2 RealDictCursor.

    For INSERTs the appended ``RETURNING id`` row is consumed up front and
    exposed as ``lastrowid``.
    """

    def __init__(self, cursor, returns_id=False):
        self._cursor = cursor
        self.lastrowid = None
        if returns_id and cursor.description:
            row = cursor.fetchone()
            self.lastrowid = row['id'] if row else None

    def fetchone(self):
        return self._cursor.fetchone()

    def fetchall(self):
        return self._cursor.fetchall()

    @property
    def rowcount(self):
        return self._cursor.rowcount


class _PgConnection:
    """Gives a pooled psycopg2 connection the sqlite3 ``conn.execute`` API."""

    def __init__(self, conn):
        self._conn = conn

    def execute(self, sql, params=None):
        from psycopg2.extras import RealDictCursor

        cursor = self._conn.cursor(cursor_factory=RealDictCursor)
        if sql.strip().upper().startswith('PRAGMA'):
            return _PgCursor(cursor)
        converted = to_postgres_sql(sql)
        cursor.execute(converted, tuple(params) if params is not None else None)
        return _PgCursor(cursor, returns_id=converted.endswith('RETURNING id'))

    def commit(self):
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()


@contextmanager
def get_db(db_path=None):
    """
    Open a connection for one transaction.

    Usage:
        with get_db() as conn:
            conn.execute('SELECT ...')

    Args:
        db_path: SQLite file; defaults to BARNBOOK_DB. Ignored on PostgreSQL.
    """
    if is_postgres():
        pool = _get_pg_pool()
        raw = pool.getconn()
        conn = _PgConnection(raw)
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            pool.putconn(raw)
        return

    conn = sqlite3.connect(db_path or BARNBOOK_DB, timeout=10)
    conn.execute('PRAGMA journal_mode=WAL')
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()

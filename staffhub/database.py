"""PostgreSQL access: one lazily created threaded pool shared by every repository.

Connections are handed out in autocommit mode. Repositories that need a
transaction switch autocommit off themselves (see BaseRepository.execute_many).
"""
import os
import time
import logging
import threading

import psycopg2
from psycopg2 import pool
from psycopg2.extras import RealDictCursor

logger = logging.getLogger('staffhub.database')

DATABASE_URL = os.environ.get('DATABASE_URL')
if not DATABASE_URL:
    raise ValueError('DATABASE_URL is not set. Point it at the StaffHub PostgreSQL database.')

MIN_CONNECTIONS = int(os.environ.get('DB_POOL_MIN_CONN', '2'))
MAX_CONNECTIONS = int(os.environ.get('DB_POOL_MAX_CONN', '8'))
CHECKOUT_TIMEOUT = int(os.environ.get('DB_POOL_TIMEOUT', '10'))
CHECKOUT_ATTEMPTS = 3
PING_TTL = 5

# TCP keepalives so idle pooled sockets are noticed before a request uses them
_CONNECT_ARGS = dict(keepalives=1, keepalives_idle=30, keepalives_interval=10,
                     keepalives_count=5, connect_timeout=5)

_pool = None
_pool_lock = threading.Lock()
_last_ping = {'ok': False, 'at': 0.0}

_BROKEN = (psycopg2.OperationalError, psycopg2.InterfaceError, psycopg2.DatabaseError)


def _shared_pool():
    global _pool
    with _pool_lock:
        if _pool is None:
            _pool = pool.ThreadedConnectionPool(MIN_CONNECTIONS, MAX_CONNECTIONS,
                                                dsn=DATABASE_URL, **_CONNECT_ARGS)
            logger.info(f'Database pool ready ({MIN_CONNECTIONS}-{MAX_CONNECTIONS} connections)')
        return _pool


def _checkout(timeout):
    """Take a connection, giving up after `timeout` seconds.

    The pool's getconn() waits forever once every connection is out, so it
    runs on a daemon thread that is left behind on timeout.
    """
    outcome = {}

    def take():
        try:
            outcome['conn'] = _shared_pool().getconn()
        except Exception as e:
            outcome['error'] = e

    worker = threading.Thread(target=take, daemon=True)
    worker.start()
    worker.join(timeout)
    if worker.is_alive():
        raise psycopg2.OperationalError(f'No database connection free after {timeout}s')
    if 'error' in outcome:
        raise outcome['error']
    return outcome['conn']


def _discard(conn):
    try:
        _shared_pool().putconn(conn, close=True)
    except Exception as e:
        logger.debug(f'Could not close discarded connection: {e}')


def get_db():
    """A live pooled connection in autocommit mode.

    Connections the server has dropped fail a `SELECT 1` check and are
    replaced, up to CHECKOUT_ATTEMPTS times.
    """
    error = None
    for attempt in range(1, CHECKOUT_ATTEMPTS + 1):
        conn = _checkout(CHECKOUT_TIMEOUT)
        try:
            with conn.cursor() as cur:
                cur.execute('SELECT 1')
            conn.rollback()
            conn.autocommit = True
            return conn
        except _BROKEN as e:
            error = e
            logger.warning(f'Dropped dead connection ({attempt}/{CHECKOUT_ATTEMPTS}): {e}')
            _discard(conn)
    raise psycopg2.OperationalError(f'No usable database connection: {error}')


def release_db(conn):
    """Hand `conn` back to the pool. Closed or unresettable connections are thrown away."""
    if conn is None or _pool is None:
        return
    if conn.closed:
        _discard(conn)
        return
    try:
        conn.autocommit = False
        _pool.putconn(conn)
    except Exception as e:
        logger.debug(f'Returning connection failed, discarding it: {e}')
        _discard(conn)


def get_cursor(conn):
    return conn.cursor(cursor_factory=RealDictCursor)


def ping_db():
    """Health check. A success is remembered for PING_TTL seconds."""
    now = time.time()
    if _last_ping['ok'] and now - _last_ping['at'] < PING_TTL:
        return True
    try:
        conn = get_db()
    except Exception as e:
        logger.warning(f'Database ping failed: {e}')
        _last_ping['ok'] = False
        return False
    try:
        with conn.cursor() as cur:
            cur.execute('SELECT 1')
        _last_ping.update(ok=True, at=now)
        return True
    except Exception as e:
        logger.warning(f'Database ping failed: {e}')
        _last_ping['ok'] = False
        return False
    finally:
        release_db(conn)


def _schema_exists(cursor):
    cursor.execute("SELECT to_regclass('public.employees') IS NOT NULL AS present")
    return cursor.fetchone()['present']


def init_db():
    """Create the schema and seed data on an empty database; no-op otherwise."""
    conn = get_db()
    try:
        cursor = get_cursor(conn)
        if _schema_exists(cursor):
            logger.info('Schema present, skipping initialization')
            return
        from migrations.init_schema import create_schema
        conn.autocommit = False
        create_schema(conn, cursor)
        conn.commit()
        logger.info('Schema created')
    except Exception:
        conn.rollback()
        raise
    finally:
        release_db(conn)


def dict_from_row(row):
    """Plain dict copy of `row` with dates and timestamps as ISO strings."""
    if row is None:
        return None
    return {key: value.isoformat() if hasattr(value, 'isoformat') else value
            for key, value in dict(row).items()}

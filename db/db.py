# db/db.py
import json
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional

import mysql.connector
from mysql.connector import pooling

from config.config import DB_HOST, DB_PORT, DB_USER, DB_PASSWORD, DB_NAME, DB_POOL_SIZE
from logs.logger import logger

_POOL: Optional[pooling.MySQLConnectionPool] = None


def _get_pool() -> pooling.MySQLConnectionPool:
    global _POOL
    if _POOL is None:
        _POOL = pooling.MySQLConnectionPool(
            pool_name="adsreport_pool",
            pool_size=DB_POOL_SIZE,
            host=DB_HOST,
            port=DB_PORT,
            user=DB_USER,
            password=DB_PASSWORD,
            database=DB_NAME,
            autocommit=True,
            pool_reset_session=True,
        )
    return _POOL


@contextmanager
def _cursor(op: str, dictionary: bool = False) -> Iterator[Any]:
    """
    Borrow a pooled connection and yield a cursor.
    Connection goes back to the pool even if the statement fails.
    """
    conn = _get_pool().get_connection()
    cur = None
    try:
        cur = conn.cursor(dictionary=dictionary)
        yield cur
    except mysql.connector.Error as e:
        logger.error(f"DB {op} error: {e}")
        raise
    finally:
        if cur is not None:
            cur.close()
        conn.close()


def execute(sql: str, params: Optional[Dict[str, Any]] = None) -> int:
    """
    Execute INSERT/UPDATE/DELETE and return affected rows.
    """
    with _cursor("execute") as cur:
        cur.execute(sql, params or {})
        return cur.rowcount


def execute_many(sql: str, rows: Iterable[Dict[str, Any]]) -> int:
    """
    Batch version of execute(). Affected count is whatever the connector reports.
    """
    rows = list(rows)
    if not rows:
        return 0
    with _cursor("execute_many") as cur:
        cur.executemany(sql, rows)
        return cur.rowcount


def query_dict(sql: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    """
    Execute SELECT and return list of dict rows.
    """
    with _cursor("query_dict", dictionary=True) as cur:
        cur.execute(sql, params or {})
        return cur.fetchall()


def query_one(sql: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
    with _cursor("query_one", dictionary=True) as cur:
        cur.execute(sql, params or {})
        return cur.fetchone()


def query_scalar(sql: str, params: Optional[Dict[str, Any]] = None) -> Any:
    """
    Execute SELECT that returns single value (e.g., COUNT(*)).
    """
    with _cursor("query_scalar") as cur:
        cur.execute(sql, params or {})
        row = cur.fetchone()
        return row[0] if row else None


# -------------------------
# JSON columns
# -------------------------
def to_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, default=str, ensure_ascii=False)


def from_json(value: Any) -> Any:
    """
    MySQL JSON columns come back as str (or bytes on some connector builds).
    """
    if value is None or isinstance(value, (dict, list)):
        return value
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    try:
        return json.loads(value)
    except ValueError:
        logger.warning(f"DB JSON column could not be decoded: {str(value)[:80]}")
        return None

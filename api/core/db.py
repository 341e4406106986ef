"""
Async database access helpers (raw SQL) using asyncpg.

This module owns the connection pool. FastAPI initializes it on startup and
closes it on shutdown (see `api/main.py`).

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...

Every helper takes an optional `conn`. Pass a connection obtained from
`connection()` to run the statement inside that connection's transaction;
leave it out to run on the pool.
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import asyncpg

_pool: asyncpg.Pool | None = None


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _sanitize_database_url(url: str) -> str:
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = [(k, v) for (k, v) in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def database_url() -> str:
    url = os.environ.get("DATABASE_URL", "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL is not set.")
    return _sanitize_database_url(url)


async def init_pool() -> None:
    global _pool
    if _pool is not None:
        return None
    # Statement timeouts are a client setting; the admin engine imposes none.
    _pool = await asyncpg.create_pool(
        dsn=database_url(),
        min_size=_env_int("DB_POOL_MIN_SIZE", 1),
        max_size=_env_int("DB_POOL_MAX_SIZE", 5),
        command_timeout=_env_int("DB_COMMAND_TIMEOUT", 30),
    )


async def close_pool() -> None:
    global _pool
    if _pool is None:
        return None
    await _pool.close()
    _pool = None


def pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("DB pool is not initialized. Call init_pool() on startup.")
    return _pool


@asynccontextmanager
async def connection() -> AsyncIterator[asyncpg.Connection]:
    """
    Acquire a dedicated connection for a multi-statement unit of work.

    The connection goes back to the pool on every exit path.
    """
    async with pool().acquire() as conn:  # type: asyncpg.Connection
        yield conn


def _record_to_dict(record: asyncpg.Record) -> dict[str, Any]:
    return dict(record)


async def fetch_one(sql: str, *args: Any, conn: asyncpg.Connection | None = None) -> dict[str, Any] | None:
    """
    Run a query and return a single row as a dict (or None).
    """
    # takes sql query and the positional arguments
    executor = conn if conn is not None else pool()
    row = await executor.fetchrow(sql, *args)
    return _record_to_dict(row) if row is not None else None


async def fetch_all(sql: str, *args: Any, conn: asyncpg.Connection | None = None) -> list[dict[str, Any]]:
    """
    Run a query and return all rows as a list of dicts.
    """
    executor = conn if conn is not None else pool()
    rows = await executor.fetch(sql, *args)
    return [_record_to_dict(r) for r in rows]


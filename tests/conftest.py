"""Pytest configuration and shared fixtures.

The admin engine talks to asyncpg through `core.db`. Tests swap the pool for
an in-memory fake: SQL goes to scripted responders, and transactions write to
a log (BEGIN / SAVEPOINT / RELEASE SAVEPOINT / ROLLBACK TO SAVEPOINT /
COMMIT / ROLLBACK) so commit policy can be asserted.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import pytest
from fastapi.testclient import TestClient

from core import db
from main import app
from resources.registry import ResourceRegistry, build_registry
from resources.repository import ResourceManager


class FakeTransaction:
    def __init__(self, conn: "FakeConnection") -> None:
        self.conn = conn
        self.nested = False

    async def start(self) -> None:
        self.nested = self.conn.depth > 0
        self.conn.depth += 1
        self.conn.tx_log.append("SAVEPOINT" if self.nested else "BEGIN")

    async def commit(self) -> None:
        self.conn.depth -= 1
        self.conn.tx_log.append("RELEASE SAVEPOINT" if self.nested else "COMMIT")

    async def rollback(self) -> None:
        self.conn.depth -= 1
        self.conn.tx_log.append("ROLLBACK TO SAVEPOINT" if self.nested else "ROLLBACK")

    async def __aenter__(self) -> "FakeTransaction":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            await self.commit()
        else:
            await self.rollback()
        return False


class FakeConnection:
    """
    Responders are matched in registration order by SQL substring. A result
    may be a value, an exception instance (raised), or a callable taking
    (sql, args) and returning either.
    """

    def __init__(self) -> None:
        self.responders: list[tuple[str, Any]] = []
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.tx_log: list[str] = []
        self.depth = 0

    def on(self, fragment: str, result: Any) -> "FakeConnection":
        self.responders.append((fragment, result))
        return self

    def sql_calls(self, fragment: str) -> list[tuple[str, tuple[Any, ...]]]:
        return [(sql, args) for sql, args in self.calls if fragment in sql]

    def _respond(self, sql: str, args: tuple[Any, ...]) -> Any:
        self.calls.append((sql, args))
        for fragment, result in self.responders:
            if fragment in sql:
                if callable(result):
                    result = result(sql, args)
                if isinstance(result, BaseException):
                    raise result
                return result
        return None

    def transaction(self) -> FakeTransaction:
        return FakeTransaction(self)

    async def fetch(self, sql: str, *args: Any) -> list[dict[str, Any]]:
        result = self._respond(sql, args)
        if result is None:
            return []
        if isinstance(result, dict):
            return [result]
        return list(result)

    async def fetchrow(self, sql: str, *args: Any) -> dict[str, Any] | None:
        result = self._respond(sql, args)
        if isinstance(result, list):
            return result[0] if result else None
        return result

    async def execute(self, sql: str, *args: Any) -> str:
        self._respond(sql, args)
        return "OK"


class FakePool:
    def __init__(self, conn: FakeConnection) -> None:
        self.conn = conn

    @asynccontextmanager
    async def acquire(self):
        yield self.conn

    async def fetch(self, sql: str, *args: Any):
        return await self.conn.fetch(sql, *args)

    async def fetchrow(self, sql: str, *args: Any):
        return await self.conn.fetchrow(sql, *args)

    async def execute(self, sql: str, *args: Any):
        return await self.conn.execute(sql, *args)

    async def close(self) -> None:
        return None


@pytest.fixture
def fake_conn(monkeypatch) -> FakeConnection:
    """Fake connection installed as the process-wide pool."""
    conn = FakeConnection()
    monkeypatch.setattr(db, "_pool", FakePool(conn))
    return conn


@pytest.fixture
def registry() -> ResourceRegistry:
    return build_registry()


@pytest.fixture
def manager(registry: ResourceRegistry) -> ResourceManager:
    return ResourceManager(registry)


@pytest.fixture
def test_client() -> TestClient:
    """FastAPI test client. Not used as a context manager, so no lifespan
    runs and no real pool is created."""
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}

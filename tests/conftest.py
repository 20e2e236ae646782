"""Database fixtures shared by the unit tests.

Tests run against an embedded Postgres from py-pglite when it is installed.
Set ``CROSSBOW_TEST_DB=sqlite`` (or leave py-pglite out) to use a file-backed
SQLite database instead.
"""

from __future__ import annotations

import contextlib
import logging
import os
import socket
import typing as typ

import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from crossbow.bronze import init_storage

if typ.TYPE_CHECKING:
    from pathlib import Path

try:
    from py_pglite import PGliteConfig, PGliteManager
except ImportError:  # pragma: no cover - optional dependency
    PGliteConfig = PGliteManager = None

logger = logging.getLogger(__name__)


def _wants_postgres() -> bool:
    backend = os.getenv("CROSSBOW_TEST_DB", "pglite").lower()
    return backend != "sqlite" and PGliteManager is not None


def _unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def _postgres_engine(
    stack: contextlib.AsyncExitStack, tmp_path: Path
) -> AsyncEngine:
    """Boot py-pglite on a free port and return an asyncpg engine for it."""
    config = PGliteConfig(
        use_tcp=True,
        tcp_host="127.0.0.1",
        tcp_port=_unused_port(),
        work_dir=tmp_path / "pglite",
    )
    stack.enter_context(PGliteManager(config))
    engine = create_async_engine(
        "postgresql+asyncpg://postgres:postgres@"
        f"{config.tcp_host}:{config.tcp_port}/postgres"
    )
    stack.push_async_callback(engine.dispose)
    return engine


def _foreign_keys_on(dbapi_connection: typ.Any, _record: object) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


async def _sqlite_engine(
    stack: contextlib.AsyncExitStack, tmp_path: Path
) -> AsyncEngine:
    """Return a SQLite engine that enforces foreign keys."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'crossbow.db'}")
    event.listen(engine.sync_engine, "connect", _foreign_keys_on)
    stack.push_async_callback(engine.dispose)
    return engine


async def _postgres_or_none(
    stack: contextlib.AsyncExitStack, tmp_path: Path
) -> AsyncEngine | None:
    if not _wants_postgres():
        return None
    attempt = contextlib.AsyncExitStack()
    try:
        engine = await _postgres_engine(attempt, tmp_path)
        await init_storage(engine)
    except Exception as exc:  # noqa: BLE001  # pragma: no cover
        logger.warning("py-pglite failed to start, using SQLite: %s", exc)
        await attempt.aclose()
        return None
    stack.push_async_exit(attempt)
    return engine


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a session factory over a freshly created schema."""
    async with contextlib.AsyncExitStack() as stack:
        engine = await _postgres_or_none(stack, tmp_path)
        if engine is None:
            engine = await _sqlite_engine(stack, tmp_path)
            await init_storage(engine)
        yield async_sessionmaker(engine, expire_on_commit=False)

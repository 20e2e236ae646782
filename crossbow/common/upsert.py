"""Dialect-aware ``INSERT ... ON CONFLICT`` construction.

Every idempotent write in Crossbow is a single conflict-resolving statement
keyed on a uniqueness constraint. PostgreSQL and SQLite share the
``on_conflict_do_nothing``/``on_conflict_do_update`` API, so callers build the
statement once and only the dialect-specific ``insert`` differs.
"""

from __future__ import annotations

import typing as typ

from sqlalchemy.dialects import postgresql, sqlite

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

ConflictInsert: typ.TypeAlias = postgresql.Insert | sqlite.Insert


class UnsupportedDialectError(RuntimeError):
    """Raised when conflict-resolving inserts are unavailable for a backend."""

    def __init__(self, dialect: str) -> None:
        """Record the offending SQLAlchemy dialect name."""
        self.dialect = dialect
        super().__init__(f"ON CONFLICT upserts are not supported on {dialect!r}")


def conflict_insert(session: AsyncSession, model: type[typ.Any]) -> ConflictInsert:
    """Return an ``INSERT`` for ``model`` supporting ``ON CONFLICT`` clauses."""
    dialect = session.get_bind().dialect.name
    match dialect:
        case "postgresql":
            return postgresql.insert(model)
        case "sqlite":
            return sqlite.insert(model)
        case _:
            raise UnsupportedDialectError(dialect)

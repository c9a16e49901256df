"""A registry that stores Posterum entries in a PostgreSQL table.

Entries live in one table (``posterum`` by default) and are partitioned by
namespace, so one tenant never observes another's entries. Timestamps are
stored and returned in UTC.

Database access goes through the :class:`Querier` protocol. Statements use
PostgreSQL's positional ``$1, $2, ...`` placeholders, which drivers such as
asyncpg-style adapters accept directly. Because a querier may be a
connection or an open transaction, registry operations can join
caller-managed transactions.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable

from postera.model import NotFoundError, PosteraError, Posterum, Query, namespace_from_context

_COLUMNS = "id, body, execute_at, created_at"


@runtime_checkable
class Querier(Protocol):
    """Minimal database access needed by :class:`PostgresRegistry`."""

    def execute(self, sql: str, params: Sequence[Any]) -> int:
        """Run a statement and return the number of rows it affected."""

    def query(self, sql: str, params: Sequence[Any]) -> Iterable[Sequence[Any]]:
        """Run a query and return its rows."""

    def query_row(self, sql: str, params: Sequence[Any]) -> Sequence[Any] | None:
        """Run a query and return its first row, or ``None`` when there is none."""


def sanitize_identifier(name: str) -> str:
    """Quote ``name`` as a PostgreSQL identifier, escaping embedded quotes."""
    cleaned = name.replace("\x00", "")
    return '"' + cleaned.replace('"', '""') + '"'


def _to_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _current_namespace() -> str:
    # No active namespace acts as an implicit single-tenant namespace.
    return namespace_from_context() or ""


def _posterum_from_row(row: Sequence[Any]) -> Posterum:
    posterum_id, body, execute_at, created_at = row
    return Posterum(
        id=str(posterum_id),
        body=bytes(body) if body is not None else b"",
        execute_at=_to_utc(execute_at),
        created_at=_to_utc(created_at),
    )


class PostgresRegistry:
    """Persists Posterum entries in a PostgreSQL table, partitioned by namespace.

    Construction validates that the table and its columns exist, so a schema
    mismatch surfaces immediately rather than at the first data operation.
    """

    def __init__(self, db: Querier, table_name: str = "posterum") -> None:
        if db is None:
            raise TypeError("postgres: PostgresRegistry requires a querier")
        if not table_name:
            raise ValueError("postgres: table name must not be empty")
        self._db = db
        self._table_name = table_name
        self.validate_schema()

    @property
    def table_name(self) -> str:
        """The unquoted name of the backing table."""
        return self._table_name

    def table_ref(self) -> str:
        """Return the safely quoted identifier of the backing table."""
        return sanitize_identifier(self._table_name)

    def save(self, posterum: Posterum) -> None:
        """Persist ``posterum`` in the active namespace.

        An existing entry with the same id has its body and execute_at
        overwritten; its original namespace assignment is kept.
        """
        if posterum.execute_at is None or posterum.created_at is None:
            raise ValueError(
                f"postgres: save {posterum.id}: execute_at and created_at must be set"
            )
        self._db.execute(
            f"INSERT INTO {self.table_ref()} (id, namespace, body, execute_at, created_at)\n"
            "VALUES ($1, $2, $3, $4, $5)\n"
            "ON CONFLICT (id) DO UPDATE\n"
            "    SET body       = EXCLUDED.body,\n"
            "        execute_at = EXCLUDED.execute_at",
            [
                posterum.id,
                _current_namespace(),
                bytes(posterum.body),
                _to_utc(posterum.execute_at),
                _to_utc(posterum.created_at),
            ],
        )

    def get(self, posterum_id: str) -> Posterum:
        """Return the entry with ``posterum_id`` in the active namespace.

        An id stored under another namespace is reported as not found.
        """
        row = self._db.query_row(
            f"SELECT {_COLUMNS}\nFROM {self.table_ref()}\nWHERE id = $1 AND namespace = $2",
            [posterum_id, _current_namespace()],
        )
        if row is None:
            raise NotFoundError(f"postgres: get {posterum_id}: posterum not found")
        return _posterum_from_row(row)

    def remove(self, posterum_id: str) -> None:
        """Delete the entry with ``posterum_id`` from the active namespace."""
        affected = self._db.execute(
            f"DELETE FROM {self.table_ref()}\nWHERE id = $1 AND namespace = $2",
            [posterum_id, _current_namespace()],
        )
        if not affected:
            raise NotFoundError(f"postgres: remove {posterum_id}: posterum not found")

    def list(self, query: Query) -> list[Posterum]:
        """Return entries of the active namespace in ``[start, end)`` by execute_at."""
        sql, params = self.list_query(_current_namespace(), query)
        return [_posterum_from_row(row) for row in self._db.query(sql, params)]

    def list_query(self, namespace: str, query: Query) -> tuple[str, list[Any]]:
        """Build the SQL statement and positional parameters for :meth:`list`."""
        params: list[Any] = [namespace]
        sql = f"SELECT {_COLUMNS} FROM {self.table_ref()} WHERE namespace = $1"
        if query.start is not None:
            params.append(_to_utc(query.start))
            sql += f" AND execute_at >= ${len(params)}"
        if query.end is not None:
            params.append(_to_utc(query.end))
            sql += f" AND execute_at < ${len(params)}"
        sql += " ORDER BY execute_at ASC"
        return sql, params

    def validate_schema(self) -> None:
        """Check with a zero-row SELECT that the table and its columns exist."""
        try:
            list(
                self._db.query(
                    "SELECT id, namespace, body, execute_at, created_at "
                    f"FROM {self.table_ref()} LIMIT 0",
                    [],
                )
            )
        except Exception as error:
            raise PosteraError(
                f'postgres: schema validation for table "{self._table_name}": {error}'
            ) from error
"""Core types shared by the orchestrator, registries and enqueuers."""

from __future__ import annotations

import contextvars
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable


class PosteraError(Exception):
    """Base class for errors raised by postera."""


class InvalidInputError(PosteraError, ValueError):
    """A caller-supplied value failed validation at the public API boundary."""


class NotFoundError(PosteraError, LookupError):
    """No Posterum exists for the requested id."""


@dataclass(frozen=True)
class Posterum:
    """A scheduled future recall delivered when ``execute_at`` arrives.

    ``id`` and ``created_at`` are assigned by the orchestrator on creation;
    values supplied by the caller are overwritten.
    """

    id: str = ""
    body: bytes = b""
    execute_at: datetime | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class Query:
    """Half-open time-range filter: ``start`` inclusive, ``end`` exclusive.

    A ``None`` bound leaves that side of the range open.
    """

    start: datetime | None = None
    end: datetime | None = None


_namespace: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "postera_namespace", default=None
)


@contextmanager
def _namespace_scope(namespace: str) -> Iterator[str]:
    token = _namespace.set(namespace)
    try:
        yield namespace
    finally:
        _namespace.reset(token)


def with_namespace(namespace: str) -> AbstractContextManager[str]:
    """Return a context manager under which ``namespace`` is the active namespace.

    An empty namespace is indistinguishable from no namespace at all, so it
    is rejected immediately with ``ValueError``.
    """
    if not namespace:
        raise ValueError("postera: with_namespace called with empty namespace")
    return _namespace_scope(namespace)


def namespace_from_context() -> str | None:
    """Return the active namespace, or ``None`` when none has been set."""
    return _namespace.get()


@runtime_checkable
class Registry(Protocol):
    """Persists Posterum entries.

    Multi-tenant implementations read the active namespace with
    :func:`namespace_from_context` and isolate entries accordingly.
    Implementations must be safe for concurrent use.
    """

    def save(self, posterum: Posterum) -> None:
        """Persist ``posterum``, overwriting any entry with the same id."""

    def get(self, posterum_id: str) -> Posterum:
        """Return the entry with ``posterum_id``; raise NotFoundError if absent."""

    def remove(self, posterum_id: str) -> None:
        """Delete the entry with ``posterum_id``; raise NotFoundError if absent."""

    def list(self, query: Query) -> list[Posterum]:
        """Return the entries matching ``query``, ordered by execute_at ascending."""


@runtime_checkable
class Enqueuer(Protocol):
    """Schedules a Posterum to fire at its ``execute_at``.

    Implementations must be safe for concurrent use.
    """

    def enqueue(self, posterum: Posterum) -> None:
        """Schedule ``posterum`` to fire at ``posterum.execute_at``."""

    def cancel(self, posterum_id: str) -> None:
        """Remove the scheduled entry for ``posterum_id``; best-effort."""
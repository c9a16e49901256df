"""Orchestrator that keeps a registry and an enqueuer in sync."""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import date as _date
from datetime import datetime, time, timedelta, timezone

from postera.model import Enqueuer, InvalidInputError, Posterum, Query, Registry


def utc_now() -> datetime:
    """Return the current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def day_bounds(moment: datetime) -> tuple[datetime, datetime]:
    """Return the ``[start, end)`` bounds of the calendar day holding ``moment``.

    Bounds are computed in ``moment``'s own time zone.
    """
    start = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


class Postarius:
    """Coordinates persistence (Registry) and scheduling (Enqueuer)."""

    def __init__(self, registry: Registry, enqueuer: Enqueuer) -> None:
        self._registry = registry
        self._enqueuer = enqueuer

    def create(self, posterum: Posterum) -> Posterum:
        """Assign a fresh id and creation time, enqueue and persist ``posterum``.

        If persisting fails after a successful enqueue, the scheduled entry is
        cancelled. When that rollback fails too, both errors are raised
        together in an ExceptionGroup.
        """
        if posterum.execute_at is None:
            raise InvalidInputError("postera: create: execute_at must be set")

        posterum = replace(posterum, id=str(uuid.uuid4()), created_at=utc_now())
        self._enqueuer.enqueue(posterum)

        try:
            self._registry.save(posterum)
        except Exception as save_error:
            try:
                self._enqueuer.cancel(posterum.id)
            except Exception as rollback_error:
                raise ExceptionGroup(
                    "postera: create failed and rollback cancel failed",
                    [save_error, rollback_error],
                ) from None
            raise
        return posterum

    def get(self, posterum_id: str) -> Posterum:
        """Return the Posterum with ``posterum_id``."""
        return self._registry.get(posterum_id)

    def remove(self, posterum_id: str) -> None:
        """Cancel the schedule for ``posterum_id`` and delete it from the registry.

        Cancellation happens first so a pending task cannot fire against a
        deleted entry. If deletion then fails, the original entry is
        re-enqueued; when that fails too, both errors are raised together.
        """
        posterum = self._registry.get(posterum_id)
        self._enqueuer.cancel(posterum_id)

        try:
            self._registry.remove(posterum_id)
        except Exception as remove_error:
            try:
                self._enqueuer.enqueue(posterum)
            except Exception as rollback_error:
                raise ExceptionGroup(
                    "postera: remove failed and rollback enqueue failed",
                    [remove_error, rollback_error],
                ) from None
            raise

    def list(self, query: Query) -> list[Posterum]:
        """Return the entries matching ``query`` in registry order."""
        return list(self._registry.list(query))

    def list_incoming(self) -> list[Posterum]:
        """Return the entries scheduled at or after the present instant."""
        return self.list(Query(start=utc_now()))

    def list_today(self) -> list[Posterum]:
        """Return the entries within the current UTC calendar day."""
        return self.list_by_date(utc_now())

    def list_incoming_today(self) -> list[Posterum]:
        """Return the entries later today (UTC) that have not yet executed."""
        current = utc_now()
        _, end = day_bounds(current)
        return self.list(Query(start=current, end=end))

    def list_last_week(self) -> list[Posterum]:
        """Return the entries from the last seven days, ending now."""
        return self.list_last_n_days(7)

    def list_last_n_days(self, n: int) -> list[Posterum]:
        """Return the entries from the last ``n`` days, ending now."""
        if n < 0:
            raise InvalidInputError(
                f"postera: list last n days: n must be non-negative, got {n}"
            )
        current = utc_now()
        return self.list(Query(start=current - timedelta(days=n), end=current))

    def list_by_date(self, date: datetime | _date) -> list[Posterum]:
        """Return the entries within the calendar day of ``date``.

        Day bounds follow ``date``'s time zone; a plain date is taken as UTC.
        """
        if not isinstance(date, datetime):
            date = datetime.combine(date, time(), tzinfo=timezone.utc)
        start, end = day_bounds(date)
        return self.list(Query(start=start, end=end))
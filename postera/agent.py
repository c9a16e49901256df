"""Adapter that turns agent-supplied strings into orchestrator calls.

An agent works with human-readable inputs: an ISO 8601 local datetime
without an offset and an IANA time-zone name given separately. The
:class:`AgentTool` converts those into aware datetimes anchored to the
user's zone and forwards every operation to a :class:`Postarius`.

Namespace isolation is left to the caller: activate a namespace with
:func:`postera.model.with_namespace` before calling the tool, and it flows
through to the registry and enqueuer untouched.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from postera.model import InvalidInputError, NotFoundError, PosteraError, Posterum, Query
from postera.postarius import Postarius

TIME_LAYOUT = "2006-01-02T15:04:05"
DATE_LAYOUT = "2006-01-02"
_TIME_EXAMPLE = "2024-01-15T09:00:00"
_DATE_EXAMPLE = "2024-01-15"
_ZONE_EXAMPLE = "Asia/Jakarta"

_LOCAL_TIME = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:[.,](\d+))?", re.ASCII
)
_LOCAL_DATE = re.compile(r"(\d{4})-(\d{2})-(\d{2})", re.ASCII)


class AgentError(PosteraError):
    """An agent-facing error whose message explains how to correct the call."""


class _AgentInvalidInputError(AgentError, InvalidInputError):
    pass


class _AgentNotFoundError(AgentError, NotFoundError):
    pass


@dataclass(frozen=True)
class CreateArgs:
    """Arguments for scheduling a new Posterum.

    ``local_time`` is a datetime such as ``2024-01-15T09:00:00`` with no
    offset; ``timezone`` is an IANA name and falls back to the tool's
    default when empty.
    """

    body: bytes | str = b""
    local_time: str = ""
    timezone: str = ""


@dataclass(frozen=True)
class ListArgs:
    """Arguments for a half-open ``[start, end)`` range query.

    An empty bound leaves that side of the range open.
    """

    from_local_time: str = ""
    to_local_time: str = ""
    timezone: str = ""


@dataclass(frozen=True)
class ListByDateArgs:
    """Arguments for a query over one calendar day in the user's zone."""

    local_date: str = ""
    timezone: str = ""


def parse_local_time(value: str, zone: tzinfo) -> datetime:
    """Parse a local datetime without an offset and anchor it to ``zone``."""
    if not value:
        raise AgentError(
            f'agent: local_time is required: provide a datetime string in format '
            f'"{TIME_LAYOUT}" (e.g., "{_TIME_EXAMPLE}")'
        )
    invalid = AgentError(
        f'agent: invalid local_time "{value}": expected format "{TIME_LAYOUT}" '
        f'without a timezone suffix (e.g., "{_TIME_EXAMPLE}")'
    )
    match = _LOCAL_TIME.fullmatch(value)
    if match is None:
        raise invalid
    year, month, day, hour, minute, second, fraction = match.groups()
    microsecond = int((fraction or "").ljust(6, "0")[:6])
    try:
        return datetime(
            int(year),
            int(month),
            int(day),
            int(hour),
            int(minute),
            int(second),
            microsecond,
            tzinfo=zone,
        )
    except ValueError:
        raise invalid from None


def parse_local_date(value: str, zone: tzinfo) -> datetime:
    """Parse an ISO 8601 date and return midnight of that day in ``zone``."""
    if not value:
        raise AgentError(
            f'agent: local_date is required: provide a date string in format '
            f'"{DATE_LAYOUT}" (e.g., "{_DATE_EXAMPLE}")'
        )
    invalid = AgentError(
        f'agent: invalid local_date "{value}": expected format "{DATE_LAYOUT}" '
        f'(e.g., "{_DATE_EXAMPLE}")'
    )
    match = _LOCAL_DATE.fullmatch(value)
    if match is None:
        raise invalid
    year, month, day = (int(part) for part in match.groups())
    try:
        return datetime(year, month, day, tzinfo=zone)
    except ValueError:
        raise invalid from None


def _load_zone(name: str) -> tzinfo:
    if name == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def _contains(error: BaseException, kind: type[BaseException]) -> bool:
    if isinstance(error, kind):
        return True
    if isinstance(error, BaseExceptionGroup):
        return error.subgroup(kind) is not None
    return False


def _normalize(error: Exception) -> Exception | None:
    if _contains(error, InvalidInputError):
        return _AgentInvalidInputError(
            "agent: invalid input — verify that local_time is a valid non-zero "
            f"datetime and all required fields are provided: {error}"
        )
    if _contains(error, NotFoundError):
        return _AgentNotFoundError(
            "agent: posterum not found — the entry does not exist or is "
            f"inaccessible in the current namespace: {error}"
        )
    return None


@contextmanager
def _normalized_errors() -> Iterator[None]:
    try:
        yield
    except Exception as error:
        replacement = _normalize(error)
        if replacement is None:
            raise
        raise replacement from error


class AgentTool:
    """Bridges an AI agent to a :class:`Postarius`, parsing its time strings.

    ``default_timezone`` (a tzinfo or an IANA name) is used when a call
    leaves its timezone empty; without it such a call is rejected.
    """

    def __init__(
        self,
        postarius: Postarius,
        default_timezone: tzinfo | str | None = None,
    ) -> None:
        if postarius is None:
            raise TypeError("agent: postarius must not be None")
        if isinstance(default_timezone, str):
            try:
                default_timezone = _load_zone(default_timezone)
            except (ZoneInfoNotFoundError, ValueError):
                raise ValueError(
                    f'agent: unknown default timezone "{default_timezone}"'
                ) from None
        self._postarius = postarius
        self._default_timezone = default_timezone

    def create(self, args: CreateArgs) -> Posterum:
        """Parse the local time in its zone, then create and enqueue a Posterum."""
        zone = self._resolve_zone(args.timezone)
        execute_at = parse_local_time(args.local_time, zone)
        body = args.body.encode() if isinstance(args.body, str) else bytes(args.body)
        with _normalized_errors():
            return self._postarius.create(Posterum(body=body, execute_at=execute_at))

    def list(self, args: ListArgs) -> list[Posterum]:
        """Return the entries in ``[from_local_time, to_local_time)``."""
        start = end = None
        if args.from_local_time or args.to_local_time:
            zone = self._resolve_zone(args.timezone)
            if args.from_local_time:
                start = parse_local_time(args.from_local_time, zone)
            if args.to_local_time:
                end = parse_local_time(args.to_local_time, zone)
        with _normalized_errors():
            return self._postarius.list(Query(start=start, end=end))

    def list_by_date(self, args: ListByDateArgs) -> list[Posterum]:
        """Return the entries on the given calendar day in the user's zone."""
        zone = self._resolve_zone(args.timezone)
        day = parse_local_date(args.local_date, zone)
        with _normalized_errors():
            return self._postarius.list_by_date(day)

    def list_incoming(self) -> list[Posterum]:
        """Return the entries scheduled at or after the present instant."""
        with _normalized_errors():
            return self._postarius.list_incoming()

    def list_today(self) -> list[Posterum]:
        """Return the entries within the current UTC calendar day."""
        with _normalized_errors():
            return self._postarius.list_today()

    def _resolve_zone(self, name: str) -> tzinfo:
        if not name:
            if self._default_timezone is not None:
                return self._default_timezone
            raise AgentError(
                "agent: timezone is required: provide a valid IANA timezone name "
                f'(e.g., "{_ZONE_EXAMPLE}")'
            )
        try:
            return _load_zone(name)
        except (ZoneInfoNotFoundError, ValueError):
            raise AgentError(
                f'agent: unknown timezone "{name}": must be a valid IANA timezone '
                f'name (e.g., "{_ZONE_EXAMPLE}")'
            ) from None
"""Agent function tools that expose an :class:`AgentTool` by name.

Each tool takes the caller's user id and a JSON-like mapping of arguments
and returns a JSON-ready dictionary. The user id becomes the active postera
namespace for the call, so every user sees only their own entries without
the caller doing anything else.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from postera.agent import AgentTool, CreateArgs, ListArgs, ListByDateArgs
from postera.model import PosteraError, Posterum, with_namespace

_ZERO_TIME = "0001-01-01T00:00:00Z"

Handler = Callable[[Mapping[str, Any]], dict[str, Any]]


class UnauthenticatedError(PosteraError):
    """A tool was called without a user id to scope its data to."""


@dataclass(frozen=True)
class PosterumView:
    """Agent-facing form of a Posterum: text body and RFC 3339 UTC times."""

    id: str
    body: str
    execute_at: str
    created_at: str

    def to_dict(self) -> dict[str, str]:
        """Return the view as a JSON-ready dictionary."""
        return {
            "id": self.id,
            "body": self.body,
            "execute_at": self.execute_at,
            "created_at": self.created_at,
        }


def _format_rfc3339(moment: datetime | None) -> str:
    if moment is None:
        return _ZERO_TIME
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def to_posterum_view(posterum: Posterum) -> PosterumView:
    """Convert ``posterum`` into its agent-facing view."""
    return PosterumView(
        id=posterum.id,
        body=bytes(posterum.body).decode("utf-8", errors="replace"),
        execute_at=_format_rfc3339(posterum.execute_at),
        created_at=_format_rfc3339(posterum.created_at),
    )


def _entries(posterums: list[Posterum]) -> dict[str, Any]:
    return {"entries": [to_posterum_view(p).to_dict() for p in posterums]}


def _text(arguments: Mapping[str, Any], key: str) -> str:
    value = arguments.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"function tool: argument {key!r} must be a string")
    return value


@dataclass(frozen=True)
class FunctionTool:
    """A named, described operation that an agent can invoke."""

    name: str
    description: str
    parameters: tuple[str, ...]
    handler: Handler

    def __call__(
        self, user_id: str, arguments: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        """Run the tool for ``user_id`` with ``arguments`` and return its result."""
        if not user_id:
            raise UnauthenticatedError(
                "adk: unauthenticated: UserID is empty; ensure the agent is "
                "configured with a valid user session"
            )
        with with_namespace(user_id):
            return self.handler(arguments or {})


def create_tool(tool: AgentTool) -> FunctionTool:
    """Return a tool that schedules a new Posterum."""

    def handle(arguments: Mapping[str, Any]) -> dict[str, Any]:
        posterum = tool.create(
            CreateArgs(
                body=_text(arguments, "body").encode(),
                local_time=_text(arguments, "local_time"),
                timezone=_text(arguments, "timezone"),
            )
        )
        return to_posterum_view(posterum).to_dict()

    return FunctionTool(
        name="create_posterum",
        description=(
            "Schedule a future reminder to be delivered at a specific local date "
            "and time. Provide the datetime in the user's local timezone as an "
            "ISO 8601 string without a timezone suffix (e.g. 2024-01-15T09:00:00) "
            "and the timezone as an IANA name (e.g. Asia/Jakarta)."
        ),
        parameters=("body", "local_time", "timezone"),
        handler=handle,
    )


def list_tool(tool: AgentTool) -> FunctionTool:
    """Return a tool that lists entries within an optional time window."""

    def handle(arguments: Mapping[str, Any]) -> dict[str, Any]:
        return _entries(
            tool.list(
                ListArgs(
                    from_local_time=_text(arguments, "from_local_time"),
                    to_local_time=_text(arguments, "to_local_time"),
                    timezone=_text(arguments, "timezone"),
                )
            )
        )

    return FunctionTool(
        name="list_posterum",
        description=(
            "List scheduled reminders within an optional time window. Leave "
            "from_local_time or to_local_time empty to leave that side unbounded. "
            "Provide datetime bounds in the user's local timezone as ISO 8601 "
            "strings without a timezone suffix (e.g. 2024-01-15T09:00:00) and the "
            "timezone as an IANA name (e.g. Asia/Jakarta)."
        ),
        parameters=("from_local_time", "to_local_time", "timezone"),
        handler=handle,
    )


def list_by_date_tool(tool: AgentTool) -> FunctionTool:
    """Return a tool that lists entries on one calendar day in the user's zone."""

    def handle(arguments: Mapping[str, Any]) -> dict[str, Any]:
        return _entries(
            tool.list_by_date(
                ListByDateArgs(
                    local_date=_text(arguments, "local_date"),
                    timezone=_text(arguments, "timezone"),
                )
            )
        )

    return FunctionTool(
        name="list_posterum_by_date",
        description=(
            "List all reminders scheduled on a specific calendar day in the user's "
            "local timezone. Day boundaries are computed in the given timezone, so "
            "'today' reflects the user's locale rather than the server's UTC day. "
            "Provide the date as an ISO 8601 string (e.g. 2024-01-15) and the "
            "timezone as an IANA name (e.g. Asia/Jakarta)."
        ),
        parameters=("local_date", "timezone"),
        handler=handle,
    )


def list_incoming_tool(tool: AgentTool) -> FunctionTool:
    """Return a tool that lists entries scheduled at or after now."""

    def handle(arguments: Mapping[str, Any]) -> dict[str, Any]:
        return _entries(tool.list_incoming())

    return FunctionTool(
        name="list_incoming_posterum",
        description=(
            "List all reminders that are scheduled to execute at or after the "
            "current instant. Use this to show the user what future reminders "
            "are pending."
        ),
        parameters=(),
        handler=handle,
    )


def list_today_tool(tool: AgentTool) -> FunctionTool:
    """Return a tool that lists entries within the current UTC calendar day."""

    def handle(arguments: Mapping[str, Any]) -> dict[str, Any]:
        return _entries(tool.list_today())

    return FunctionTool(
        name="list_today_posterum",
        description=(
            "List all reminders scheduled within the current UTC calendar day, "
            "both past and future. Use this when the user asks what is on today's "
            "schedule."
        ),
        parameters=(),
        handler=handle,
    )
# postera

Prospective memory for AI agents. A *posterum* is a scheduled future
recall: a body of bytes that an agent should receive again when its
`execute_at` moment arrives.

`postera` keeps two systems in step:

- a **Registry**, which persists entries and answers time-range queries;
- an **Enqueuer**, which schedules each entry with whatever transport
  delivers it when the time comes.

The `Postarius` orchestrator is the only authority for entry IDs and
creation times, and it rolls back on partial failure so the registry and
the scheduler do not drift apart.

## Installation

```
pip install postera
```

The package has no runtime dependencies and needs Python 3.11 or later.

## Core types (`postera.model`)

- `Posterum` — a frozen dataclass with `id`, `body` (bytes),
  `execute_at` and `created_at` (datetimes, `None` when unset).
- `Query` — a half-open time range with `start` (inclusive) and `end`
  (exclusive); a `None` bound leaves that side open.
- `Registry` — a protocol with `save(posterum)`, `get(posterum_id)`,
  `remove(posterum_id)` and `list(query)` (ordered by `execute_at`
  ascending). `get` and `remove` raise `NotFoundError` for an unknown id.
- `Enqueuer` — a protocol with `enqueue(posterum)` and
  `cancel(posterum_id)`; cancelling is best-effort.
- `PosteraError`, the base of every error the package raises, with
  `InvalidInputError` (also a `ValueError`) for a bad value at the public
  boundary and `NotFoundError` (also a `LookupError`) for a missing entry.

### Namespaces

Multi-tenant registries keep each tenant's entries apart. The active
namespace is held in a context variable, set for a block with
`with_namespace` and read back with `namespace_from_context`:

```python
from postera.model import namespace_from_context, with_namespace

with with_namespace("alice"):
    assert namespace_from_context() == "alice"
assert namespace_from_context() is None
```

An empty namespace raises `ValueError`. The orchestrator never requires a
namespace; registries that need one read it themselves.

## The orchestrator (`postera.postarius`)

```python
from datetime import datetime, timezone
from postera.model import Posterum, with_namespace
from postera.postarius import Postarius

postarius = Postarius(my_registry, my_enqueuer)

with with_namespace("alice"):
    entry = postarius.create(
        Posterum(
            body=b"Call the dentist",
            execute_at=datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc),
        )
    )
    print(entry.id, entry.created_at)

    upcoming = postarius.list_incoming()
    today = postarius.list_today()
    postarius.remove(entry.id)
```

Behaviour worth knowing:

- `create` replaces any caller-supplied `id` (with a fresh UUID) and
  `created_at` (with the current UTC instant), enqueues first and then
  saves. If saving fails, the enqueued entry is cancelled and the save
  error is raised; if the cancel fails too, both errors are raised
  together in an `ExceptionGroup`. A missing `execute_at` raises
  `InvalidInputError`.
- `remove` fetches the entry, cancels its schedule, then deletes it from
  the registry. If the deletion fails, the entry is enqueued again; if
  that fails too, both errors are raised in an `ExceptionGroup`.
- `get(posterum_id)` and `list(query)` pass straight through to the
  registry.
- `list_incoming`, `list_today`, `list_incoming_today`, `list_last_week`,
  `list_last_n_days(n)` and `list_by_date(date)` are shorthands for
  `list(query)`. "Now" is always taken in UTC. `list_by_date` computes
  the day in the time zone of the datetime you pass; a plain `date` is
  taken as a UTC day. A negative `n` raises `InvalidInputError`.
- `day_bounds(moment)` returns the start of the calendar day containing
  `moment` and the start of the next one; `utc_now()` returns the
  current instant as an aware UTC datetime.

## Agent-facing tool (`postera.agent`)

`AgentTool` accepts the plain strings an AI agent produces — a local
datetime such as `2024-01-15T09:00:00` and an IANA zone name such as
`Asia/Jakarta` — and turns them into aware datetimes before calling the
orchestrator.

```python
from postera.agent import AgentTool, CreateArgs, ListArgs, ListByDateArgs
from postera.model import with_namespace

tool = AgentTool(postarius, default_timezone="Asia/Jakarta")

with with_namespace("alice"):
    tool.create(CreateArgs(body="Stand-up", local_time="2024-01-15T09:00:00",
                           timezone="Asia/Jakarta"))
    tool.list(ListArgs(from_local_time="2024-01-15T00:00:00", timezone="Asia/Jakarta"))
    tool.list_by_date(ListByDateArgs(local_date="2024-01-15", timezone="Asia/Jakarta"))
    tool.list_incoming()
    tool.list_today()
```

- Datetimes must not carry an offset; the zone is always given
  separately. `parse_local_time(value, zone)` and
  `parse_local_date(value, zone)` do this parsing on their own.
- `default_timezone` may be a `tzinfo` or an IANA name (an unknown name
  raises `ValueError`). When a call leaves its zone empty the default is
  used; without a default, an `AgentError` explains what to supply.
- In `ListArgs`, an empty bound leaves that side of the range open; the
  zone is only needed when a bound is given.
- `CreateArgs.body` may be bytes or text; text is encoded as UTF-8.
- Orchestrator errors about invalid input or missing entries are
  reworded as `AgentError`s that are still `InvalidInputError` or
  `NotFoundError`, with the original exception chained.

## Function tools (`postera.function_tools`)

`create_tool`, `list_tool`, `list_by_date_tool`, `list_incoming_tool` and
`list_today_tool` wrap an `AgentTool` as `FunctionTool` values, each with
a `name`, a `description` for the model, the names of its `parameters`
and a `handler`. A tool is called with the authenticated user's ID and a
mapping of string arguments:

```python
from postera.function_tools import create_tool, list_today_tool

create = create_tool(tool)
result = create("user-42", {
    "body": "Stand-up",
    "local_time": "2024-01-15T09:00:00",
    "timezone": "Asia/Jakarta",
})
today = list_today_tool(tool)("user-42")   # {"entries": [...]}
```

The user ID becomes the active namespace for the call, so each user sees
only their own entries; an empty user ID raises `UnauthenticatedError`.
A non-string argument raises `TypeError`. Entries come back through
`PosterumView` (text body, RFC 3339 UTC times to the second) in its
`to_dict()` form; `to_posterum_view(posterum)` does the conversion.

## PostgreSQL registry (`postera.postgres`)

`PostgresRegistry` stores entries in one table (`posterum` by default),
partitioned by namespace. It reaches the database through a `Querier`
that you implement over your driver:

- `execute(sql, params)` runs a statement and returns the affected row count;
- `query(sql, params)` returns the rows;
- `query_row(sql, params)` returns the first row or `None`.

Statements use positional `$1, $2, ...` placeholders.

```python
from postera.postgres import PostgresRegistry

registry = PostgresRegistry(my_querier, table_name="reminders")
```

- Construction runs a zero-row `SELECT` of every column and raises
  `PosteraError` if the table or a column is missing.
- Table names are quoted with `sanitize_identifier`, so unusual names
  are safe.
- Outside any namespace, entries are stored under the empty namespace.
  An entry under one namespace is invisible to every other: `get` and
  `remove` report it as `NotFoundError`.
- `save` upserts on `id`, overwriting `body` and `execute_at` while
  keeping the original namespace; it requires `execute_at` and
  `created_at` to be set. Times are stored and returned in UTC.
- `list_query(namespace, query)` shows the SQL and parameters `list`
  would use.

## What the package does not do

- It ships no `Enqueuer`: delivering an entry when its time comes is up
  to an implementation you provide over your own scheduler or queue.
- It ships no database driver and does not create the PostgreSQL table.
  Create it yourself with the columns `id`, `namespace`, `body`,
  `execute_at` and `created_at`, and a unique constraint on `id` (the
  upsert relies on it).
- It registers nothing with a particular agent framework; the function
  tools are plain callables you wire in yourself.

## Running the tests

```
pip install "postera[test]"
pytest
```
import uuid
from datetime import date, datetime, time, timedelta, timezone

import pytest

from postera.model import (
    InvalidInputError,
    NotFoundError,
    Posterum,
    Query,
    namespace_from_context,
    with_namespace,
)
from postera.postarius import Postarius, day_bounds, utc_now


class SaveFailed(Exception):
    pass


class RemoveFailed(Exception):
    pass


class EnqueueFailed(Exception):
    pass


class CancelFailed(Exception):
    pass


class FakeRegistry:
    def __init__(self):
        self.entries = {}
        self.queries = []
        self.fail_save = False
        self.fail_remove = False

    def _key(self, posterum_id):
        return (namespace_from_context() or "", posterum_id)

    def save(self, posterum):
        if self.fail_save:
            raise SaveFailed("save")
        self.entries[self._key(posterum.id)] = posterum

    def get(self, posterum_id):
        try:
            return self.entries[self._key(posterum_id)]
        except KeyError:
            raise NotFoundError(posterum_id) from None

    def remove(self, posterum_id):
        if self.fail_remove:
            raise RemoveFailed("remove")
        if self.entries.pop(self._key(posterum_id), None) is None:
            raise NotFoundError(posterum_id)

    def list(self, query):
        self.queries.append(query)
        ns = namespace_from_context() or ""
        found = [
            p
            for (owner, _), p in self.entries.items()
            if owner == ns
            and (query.start is None or p.execute_at >= query.start)
            and (query.end is None or p.execute_at < query.end)
        ]
        return sorted(found, key=lambda p: p.execute_at)


class FakeEnqueuer:
    def __init__(self):
        self.scheduled = {}
        self.cancelled = []
        self.fail_enqueue = False
        self.fail_cancel = False

    def enqueue(self, posterum):
        if self.fail_enqueue:
            raise EnqueueFailed("enqueue")
        self.scheduled[posterum.id] = posterum

    def cancel(self, posterum_id):
        self.cancelled.append(posterum_id)
        if self.fail_cancel:
            raise CancelFailed("cancel")
        self.scheduled.pop(posterum_id, None)


@pytest.fixture
def registry():
    return FakeRegistry()


@pytest.fixture
def enqueuer():
    return FakeEnqueuer()


@pytest.fixture
def postarius(registry, enqueuer):
    return Postarius(registry, enqueuer)


def _future(hours=1):
    return utc_now() + timedelta(hours=hours)


def test_utc_now_is_aware_utc():
    current = utc_now()
    assert current.utcoffset() == timedelta(0)


def test_day_bounds_invariants_utc():
    moment = datetime(2025, 3, 15, 13, 45, 12, 500, tzinfo=timezone.utc)
    start, end = day_bounds(moment)
    assert start <= moment < end
    assert start.date() == moment.date()
    assert start.time() == time()
    assert end.time() == time()
    assert end.date() == moment.date() + timedelta(days=1)


def test_day_bounds_keeps_location():
    zone = timezone(timedelta(hours=7))
    moment = datetime(2025, 6, 1, 23, 30, tzinfo=zone)
    start, end = day_bounds(moment)
    assert start.tzinfo is zone and end.tzinfo is zone
    assert start.date() == moment.date()
    assert start <= moment < end


def test_create_assigns_id_and_created_at(postarius, registry, enqueuer):
    before = utc_now()
    result = postarius.create(Posterum(body=b"remember", execute_at=_future()))
    after = utc_now()
    assert str(uuid.UUID(result.id)) == result.id
    assert before <= result.created_at <= after
    assert result.body == b"remember"
    assert enqueuer.scheduled[result.id] == result
    assert registry.get(result.id) == result


def test_create_overwrites_caller_fields(postarius):
    stale = datetime(2000, 1, 1, tzinfo=timezone.utc)
    result = postarius.create(
        Posterum(id="caller-id", created_at=stale, execute_at=_future())
    )
    assert result.id != "caller-id"
    assert result.created_at > stale


def test_create_generates_unique_ids(postarius):
    first = postarius.create(Posterum(execute_at=_future()))
    second = postarius.create(Posterum(execute_at=_future()))
    assert first.id != second.id


def test_create_requires_execute_at(postarius, registry, enqueuer):
    with pytest.raises(InvalidInputError):
        postarius.create(Posterum(body=b"x"))
    assert enqueuer.scheduled == {}
    assert registry.entries == {}


def test_create_enqueue_failure_saves_nothing(postarius, registry, enqueuer):
    enqueuer.fail_enqueue = True
    with pytest.raises(EnqueueFailed):
        postarius.create(Posterum(execute_at=_future()))
    assert registry.entries == {}


def test_create_save_failure_rolls_back(postarius, registry, enqueuer):
    registry.fail_save = True
    with pytest.raises(SaveFailed):
        postarius.create(Posterum(execute_at=_future()))
    assert enqueuer.scheduled == {}
    assert len(enqueuer.cancelled) == 1


def test_create_save_and_rollback_failure_groups_errors(postarius, registry, enqueuer):
    registry.fail_save = True
    enqueuer.fail_cancel = True
    with pytest.raises(ExceptionGroup) as info:
        postarius.create(Posterum(execute_at=_future()))
    kinds = [type(e) for e in info.value.exceptions]
    assert kinds == [SaveFailed, CancelFailed]


def test_get_returns_saved(postarius):
    created = postarius.create(Posterum(body=b"b", execute_at=_future()))
    assert postarius.get(created.id) == created


def test_get_missing_raises(postarius):
    with pytest.raises(NotFoundError):
        postarius.get("missing")


def test_namespace_isolation(postarius):
    with with_namespace("alpha"):
        created = postarius.create(Posterum(execute_at=_future()))
        assert postarius.get(created.id) == created
    with with_namespace("beta"):
        with pytest.raises(NotFoundError):
            postarius.get(created.id)
        assert postarius.list(Query()) == []


def test_remove_clears_both(postarius, registry, enqueuer):
    created = postarius.create(Posterum(execute_at=_future()))
    postarius.remove(created.id)
    assert enqueuer.scheduled == {}
    with pytest.raises(NotFoundError):
        postarius.get(created.id)


def test_remove_missing_does_not_cancel(postarius, enqueuer):
    with pytest.raises(NotFoundError):
        postarius.remove("missing")
    assert enqueuer.cancelled == []


def test_remove_cancel_failure_keeps_entry(postarius, enqueuer):
    created = postarius.create(Posterum(execute_at=_future()))
    enqueuer.fail_cancel = True
    with pytest.raises(CancelFailed):
        postarius.remove(created.id)
    assert postarius.get(created.id) == created


def test_remove_registry_failure_reenqueues(postarius, registry, enqueuer):
    created = postarius.create(Posterum(execute_at=_future()))
    registry.fail_remove = True
    with pytest.raises(RemoveFailed):
        postarius.remove(created.id)
    assert enqueuer.scheduled[created.id] == created


def test_remove_and_rollback_failure_groups_errors(postarius, registry, enqueuer):
    created = postarius.create(Posterum(execute_at=_future()))
    registry.fail_remove = True
    enqueuer.fail_enqueue = True
    with pytest.raises(ExceptionGroup) as info:
        postarius.remove(created.id)
    kinds = [type(e) for e in info.value.exceptions]
    assert kinds == [RemoveFailed, EnqueueFailed]


def test_list_passes_query_and_orders(postarius, registry):
    late = postarius.create(Posterum(body=b"late", execute_at=_future(5)))
    early = postarius.create(Posterum(body=b"early", execute_at=_future(1)))
    query = Query()
    assert postarius.list(query) == [early, late]
    assert registry.queries[-1] is query


def test_list_incoming_uses_now_as_lower_bound(postarius, registry):
    past = postarius.create(Posterum(execute_at=utc_now() - timedelta(hours=1)))
    future = postarius.create(Posterum(execute_at=_future()))
    before = utc_now()
    result = postarius.list_incoming()
    after = utc_now()
    query = registry.queries[-1]
    assert before <= query.start <= after
    assert query.end is None
    assert result == [future]
    assert past not in result


def test_list_today_uses_utc_day(postarius, registry):
    before = utc_now()
    postarius.list_today()
    after = utc_now()
    query = registry.queries[-1]
    assert query.start.time() == time()
    assert query.start.utcoffset() == timedelta(0)
    assert query.start.date() in {before.date(), after.date()}
    assert query.end - query.start == timedelta(days=1)


def test_list_incoming_today_bounds(postarius, registry):
    before = utc_now()
    postarius.list_incoming_today()
    after = utc_now()
    query = registry.queries[-1]
    assert before <= query.start <= after
    assert query.end.time() == time()
    assert query.end.date() == query.start.date() + timedelta(days=1)


def test_list_last_week_spans_seven_days(postarius, registry):
    before = utc_now()
    postarius.list_last_week()
    after = utc_now()
    query = registry.queries[-1]
    assert before <= query.end <= after
    assert query.end - query.start == timedelta(days=7)


@pytest.mark.parametrize("n", [0, 1, 30])
def test_list_last_n_days_span(postarius, registry, n):
    postarius.list_last_n_days(n)
    query = registry.queries[-1]
    assert query.end - query.start == timedelta(days=n)


def test_list_last_n_days_rejects_negative(postarius, registry):
    with pytest.raises(InvalidInputError):
        postarius.list_last_n_days(-1)
    assert registry.queries == []


def test_list_by_date_uses_date_location(postarius, registry):
    zone = timezone(timedelta(hours=7))
    moment = datetime(2025, 6, 1, 23, 30, tzinfo=zone)
    postarius.list_by_date(moment)
    query = registry.queries[-1]
    assert (query.start, query.end) == day_bounds(moment)
    assert query.start.tzinfo is zone


def test_list_by_date_accepts_plain_date(postarius, registry):
    day = date(2025, 6, 1)
    postarius.list_by_date(day)
    query = registry.queries[-1]
    assert query.start.date() == day
    assert query.start.utcoffset() == timedelta(0)
    assert query.start.time() == time()


def test_list_by_date_filters_entries(postarius):
    target = utc_now() + timedelta(days=3)
    inside = postarius.create(Posterum(execute_at=target))
    postarius.create(Posterum(execute_at=target + timedelta(days=2)))
    assert postarius.list_by_date(target) == [inside]
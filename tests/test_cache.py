from __future__ import annotations

import asyncio
import logging
from typing import List

import httpx
import pytest

from userdir.cache import CacheStatus, CollectionCache
from userdir.client import TransportFailure
from userdir.models import Company, User
from userdir.notifications import CollectingNotifier

pytestmark = pytest.mark.anyio


ANN = User(id=1, name="Ann", email="a@x.com", company=Company(name="Ops"))
BO = User(id=2, name="Bo", email="b@x.com", company=Company(name="Eng"))


class GatedClient:
    """Collection client whose list calls complete only when the test resolves them."""

    def __init__(self) -> None:
        self.pending: List[asyncio.Future] = []

    async def list_users(self) -> List[User]:
        future = asyncio.get_running_loop().create_future()
        self.pending.append(future)
        return await future

    async def wait_for_calls(self, count: int) -> None:
        while len(self.pending) < count:
            await asyncio.sleep(0)


class StaticClient:
    def __init__(self, *results) -> None:
        self._results = list(results)
        self.calls = 0

    async def list_users(self) -> List[User]:
        self.calls += 1
        result = self._results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def _failure() -> TransportFailure:
    return TransportFailure("list", status_code=503)


async def test_new_cache_is_loading_and_empty() -> None:
    cache = CollectionCache(StaticClient(), notifier=CollectingNotifier())
    snapshot = cache.get()

    assert snapshot.status == CacheStatus.LOADING
    assert snapshot.data == ()
    assert not cache.is_fetching


async def test_refresh_publishes_ready_snapshot() -> None:
    cache = CollectionCache(StaticClient([ANN, BO]), notifier=CollectingNotifier())
    snapshot = await cache.refresh()

    assert snapshot is cache.get()
    assert snapshot.status == CacheStatus.READY
    assert snapshot.data == (ANN, BO)
    assert snapshot.updated_at is not None
    assert snapshot.find(2) == BO
    assert snapshot.ids() == [1, 2]


async def test_stale_data_stays_readable_while_loading() -> None:
    client = GatedClient()
    cache = CollectionCache(client, notifier=CollectingNotifier())

    first = cache.invalidate()
    await client.wait_for_calls(1)
    client.pending[0].set_result([ANN])
    await first

    second = cache.invalidate()
    loading = cache.get()
    assert loading.status == CacheStatus.LOADING
    assert loading.data == (ANN,)
    assert cache.is_fetching

    await client.wait_for_calls(2)
    client.pending[1].set_result([ANN, BO])
    ready = await second

    assert ready.status == CacheStatus.READY
    assert ready.data == (ANN, BO)
    assert not cache.is_fetching


async def test_failure_keeps_prior_data_and_notifies() -> None:
    notifier = CollectingNotifier()
    cache = CollectionCache(StaticClient([ANN], _failure()), notifier=notifier)

    ready = await cache.refresh()
    errored = await cache.refresh()

    assert errored.status == CacheStatus.ERROR
    assert errored.data == ready.data
    assert errored.error == "Failed to fetch users"
    assert errored.updated_at == ready.updated_at
    assert [n.to_dict() for n in notifier.notifications] == [
        {"title": "Failed to fetch users", "variant": "destructive"}
    ]


async def test_failure_without_prior_data_reads_empty() -> None:
    cache = CollectionCache(StaticClient(_failure()), notifier=CollectingNotifier())
    snapshot = await cache.refresh()

    assert snapshot.status == CacheStatus.ERROR
    assert snapshot.data == ()


async def test_superseded_fetch_never_overwrites_newer_result() -> None:
    client = GatedClient()
    notifier = CollectingNotifier()
    cache = CollectionCache(client, notifier=notifier)

    older = cache.invalidate()
    newer = cache.invalidate()
    await client.wait_for_calls(2)

    client.pending[1].set_result([BO])
    await newer
    client.pending[0].set_result([ANN])
    await older

    assert cache.get().status == CacheStatus.READY
    assert cache.get().data == (BO,)


async def test_superseded_failure_is_discarded_silently() -> None:
    client = GatedClient()
    notifier = CollectingNotifier()
    cache = CollectionCache(client, notifier=notifier)

    older = cache.invalidate()
    newer = cache.invalidate()
    await client.wait_for_calls(2)

    client.pending[1].set_result([ANN])
    await newer
    client.pending[0].set_exception(_failure())
    await older

    assert cache.get().status == CacheStatus.READY
    assert notifier.notifications == []


async def test_duplicate_ids_keep_first_occurrence(caplog) -> None:
    duplicate = User(id=1, name="Impostor", email="i@x.com", company=Company(name="Ops"))
    cache = CollectionCache(StaticClient([ANN, BO, duplicate]), notifier=CollectingNotifier())

    with caplog.at_level(logging.WARNING, logger="userdir.cache"):
        snapshot = await cache.refresh()

    assert snapshot.data == (ANN, BO)
    assert "duplicate user id 1" in caplog.text


async def test_listeners_receive_each_published_snapshot() -> None:
    cache = CollectionCache(StaticClient([ANN], [ANN, BO]), notifier=CollectingNotifier())
    seen = []
    unsubscribe = cache.subscribe(lambda snapshot: seen.append(snapshot.status))

    await cache.refresh()
    unsubscribe()
    await cache.refresh()

    # the initial snapshot is already loading, so the first refresh only publishes ready
    assert seen == [CacheStatus.READY]


async def test_failing_listener_does_not_break_refresh(caplog) -> None:
    cache = CollectionCache(StaticClient([ANN]), notifier=CollectingNotifier())

    def broken(_snapshot) -> None:
        raise RuntimeError("listener bug")

    cache.subscribe(broken)
    with caplog.at_level(logging.ERROR, logger="userdir.cache"):
        snapshot = await cache.refresh()

    assert snapshot.status == CacheStatus.READY
    assert "listener" in caplog.text


async def test_wait_idle_awaits_background_refetch() -> None:
    client = StaticClient([ANN])
    cache = CollectionCache(client, notifier=CollectingNotifier())

    cache.invalidate()
    snapshot = await cache.wait_idle()

    assert snapshot.data == (ANN,)
    assert client.calls == 1


async def test_partial_record_reaches_the_snapshot_but_not_searches() -> None:
    from conftest import make_mock_client
    from userdir.filters import filter_users

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json=[
                {"id": 1, "name": "Ann", "email": "a@x.com", "company": {"name": "Ops"}},
                {"id": 2, "name": "Bo", "email": "b@x.com"},
            ],
        )

    notifier = CollectingNotifier()
    cache = CollectionCache(make_mock_client(handler), notifier=notifier)
    snapshot = await cache.refresh()

    assert snapshot.status == CacheStatus.READY
    assert snapshot.ids() == [1, 2]
    assert notifier.notifications == []
    assert [user.id for user in filter_users(snapshot.data, "ops")] == [1]
    assert [user.id for user in filter_users(snapshot.data, "")] == [1, 2]

"""Authoritative in-memory snapshot of the remote user collection."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, List, Optional, Set, Tuple

from .client import RemoteCollectionClient, TransportFailure
from .models import User
from .notifications import LoggingNotifier, Notification, NotificationSink

logger = logging.getLogger("userdir.cache")

SnapshotListener = Callable[["Snapshot"], None]


class CacheStatus(str, Enum):
    """Fetch status of the cached collection."""

    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class Snapshot:
    """Immutable view of the collection at one point in time."""

    status: CacheStatus
    data: Tuple[User, ...] = ()
    error: Optional[str] = None
    updated_at: Optional[datetime] = None

    @property
    def is_loading(self) -> bool:
        return self.status == CacheStatus.LOADING

    def find(self, user_id: int) -> Optional[User]:
        for user in self.data:
            if user.id == user_id:
                return user
        return None

    def ids(self) -> List[int]:
        return [user.id for user in self.data if user.id is not None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _deduplicate(users: Iterable[User]) -> Tuple[User, ...]:
    seen: Set[int] = set()
    unique: List[User] = []
    for user in users:
        if user.id is not None:
            if user.id in seen:
                logger.warning("Dropping duplicate user id %s from server response", user.id)
                continue
            seen.add(user.id)
        unique.append(user)
    return tuple(unique)


class CollectionCache:
    """Holds the last fetched collection and its fetch status.

    The snapshot is only ever replaced as a whole. Only the most recently
    started fetch may publish its result; completions of superseded fetches
    are discarded.
    """

    def __init__(
        self,
        client: RemoteCollectionClient,
        *,
        notifier: NotificationSink | None = None,
    ) -> None:
        self._client = client
        self._notifier = notifier or LoggingNotifier()
        self._snapshot = Snapshot(status=CacheStatus.LOADING)
        self._generation = 0
        self._in_flight: Set[int] = set()
        self._tasks: Set[asyncio.Task] = set()
        self._listeners: List[SnapshotListener] = []

    def get(self) -> Snapshot:
        return self._snapshot

    @property
    def is_fetching(self) -> bool:
        return bool(self._in_flight)

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register ``listener`` for every published snapshot; returns an unsubscribe callable."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def refresh(self) -> Snapshot:
        """Fetch the collection and publish the result. Never raises on transport failure."""

        return await self._fetch(self._begin())

    def invalidate(self) -> "asyncio.Task[Snapshot]":
        """Mark the snapshot stale and start a refetch in the background."""

        generation = self._begin()
        task = asyncio.get_running_loop().create_task(self._fetch(generation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> Snapshot:
        """Wait for every background refetch started by :meth:`invalidate`."""

        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return self._snapshot
            await asyncio.gather(*pending)

    def _begin(self) -> int:
        self._generation += 1
        generation = self._generation
        self._in_flight.add(generation)
        current = self._snapshot
        if current.status != CacheStatus.LOADING:
            self._publish(
                Snapshot(
                    status=CacheStatus.LOADING,
                    data=current.data,
                    updated_at=current.updated_at,
                )
            )
        return generation

    async def _fetch(self, generation: int) -> Snapshot:
        try:
            users = await self._client.list_users()
        except TransportFailure as exc:
            if self._is_superseded(generation):
                return self._snapshot
            logger.warning("Fetching users failed: %s", exc.describe())
            current = self._snapshot
            self._publish(
                Snapshot(
                    status=CacheStatus.ERROR,
                    data=current.data,
                    error=exc.message,
                    updated_at=current.updated_at,
                )
            )
            self._notifier.notify(Notification(title=exc.message, variant="destructive"))
            return self._snapshot
        finally:
            self._in_flight.discard(generation)

        if self._is_superseded(generation):
            return self._snapshot

        snapshot = Snapshot(
            status=CacheStatus.READY,
            data=_deduplicate(users),
            updated_at=_utcnow(),
        )
        self._publish(snapshot)
        logger.info("Loaded %d user(s)", len(snapshot.data))
        return snapshot

    def _is_superseded(self, generation: int) -> bool:
        if generation != self._generation:
            logger.debug("Discarding result of superseded fetch %s", generation)
            return True
        return False

    def _publish(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Snapshot listener %r failed", listener)


__all__ = ["CacheStatus", "CollectionCache", "Snapshot", "SnapshotListener"]

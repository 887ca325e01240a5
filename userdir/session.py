"""Explicit wiring of the client, cache, dialogs, and coordinator for one operator."""
from __future__ import annotations

import logging
from typing import List, Optional

import httpx

from .cache import CollectionCache
from .client import RemoteCollectionClient
from .config import Settings
from .coordinator import MutationCoordinator
from .dialogs import InteractionStateMachine
from .filters import filter_users
from .models import User
from .notifications import LoggingNotifier, NotificationSink

logger = logging.getLogger("userdir.session")


class DirectorySession:
    """Owns one :class:`CollectionCache` and everything that reads or updates it.

    Consumers are handed the session (or its parts) explicitly; nothing here is
    process global.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        notifier: NotificationSink | None = None,
        http_client: httpx.AsyncClient | None = None,
        client: RemoteCollectionClient | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.notifier = notifier or LoggingNotifier()
        self.client = client or RemoteCollectionClient.from_settings(self.settings, http_client=http_client)
        self.cache = CollectionCache(self.client, notifier=self.notifier)
        self.dialogs = InteractionStateMachine()
        self.coordinator = MutationCoordinator(
            self.client,
            self.cache,
            self.dialogs,
            notifier=self.notifier,
        )

    def visible_users(self, query: str = "") -> List[User]:
        """Records of the current snapshot that match ``query``."""

        return filter_users(self.cache.get().data, query)

    def find_user(self, user_id: int) -> Optional[User]:
        return self.cache.get().find(user_id)

    async def aclose(self) -> None:
        await self.cache.wait_idle()
        await self.client.aclose()
        logger.debug("Directory session for %s closed", self.client.base_url)

    async def __aenter__(self) -> "DirectorySession":
        return self

    async def __aexit__(self, *_exc_info) -> None:
        await self.aclose()


__all__ = ["DirectorySession"]

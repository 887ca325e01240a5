"""Sequencing of create, update, and delete requests with cache reconciliation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Literal, Optional, Set

from .cache import CollectionCache, Snapshot
from .client import RemoteCollectionClient, TransportFailure
from .dialogs import (
    AddOpen,
    Closed,
    ConfirmDelete,
    DialogState,
    EditOpen,
    InteractionStateMachine,
    InvalidTransition,
)
from .models import FormData, User
from .notifications import LoggingNotifier, Notification, NotificationSink

logger = logging.getLogger("userdir.coordinator")

MutationKind = Literal["create", "update", "delete"]

SUCCESS_MESSAGES = {
    "create": "User added successfully",
    "update": "User updated successfully",
    "delete": "User deleted successfully",
}


@dataclass(frozen=True)
class MutationOutcome:
    """Result of a single create, update, or delete request."""

    operation: MutationKind
    ok: bool
    message: str
    user: Optional[User] = None
    user_id: Optional[int] = None
    refresh: Optional["asyncio.Task[Snapshot]"] = None

    async def settled(self) -> Optional[Snapshot]:
        """Wait for the refetch triggered by a successful mutation, if any."""

        if self.refresh is None:
            return None
        return await self.refresh


class MutationCoordinator:
    """Send one mutation per operator action and reconcile the cache afterwards.

    Successful mutations invalidate the cache and close the dialog that started
    them. Failed mutations only notify; the cache snapshot and the dialog,
    including the operator's form data, are left as they were. While a request
    started from an open dialog is unresolved, further submits from that same
    dialog raise :class:`InvalidTransition`.
    """

    def __init__(
        self,
        client: RemoteCollectionClient,
        cache: CollectionCache,
        dialogs: InteractionStateMachine,
        *,
        notifier: NotificationSink | None = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._dialogs = dialogs
        self._notifier = notifier or LoggingNotifier()
        self._pending: Set[DialogState] = set()

    async def submit(self, existing: Optional[User], form_data: FormData) -> MutationOutcome:
        """Create a user from ``form_data`` or, given ``existing``, update that user."""

        origin = self._dialogs.state
        fields = form_data.copy()

        if existing is not None:
            if existing.id is None:
                raise ValueError("Cannot update a user that has no id")
            operation: MutationKind = "update"
            request = fields.to_user(user_id=existing.id)
        else:
            operation = "create"
            request = fields.to_user()

        self._claim(origin, operation)
        try:
            try:
                if operation == "update":
                    saved = await self._client.update_user(request)
                else:
                    saved = await self._client.create_user(request)
            except TransportFailure as exc:
                return self._failed(operation, exc, user_id=request.id)

            logger.info("User %s %s", saved.id, "updated" if operation == "update" else "created")
            return self._succeeded(operation, origin, user=saved, user_id=saved.id)
        finally:
            self._pending.discard(origin)

    async def remove(self, user_id: int) -> MutationOutcome:
        """Delete the user with ``user_id``."""

        origin = self._dialogs.state
        self._claim(origin, "delete")
        try:
            try:
                await self._client.delete_user(user_id)
            except TransportFailure as exc:
                return self._failed("delete", exc, user_id=user_id)

            logger.info("User %s deleted", user_id)
            return self._succeeded("delete", origin, user_id=user_id)
        finally:
            self._pending.discard(origin)

    async def submit_active(self) -> MutationOutcome:
        """Submit the form of the open add or edit dialog."""

        state = self._dialogs.state
        if isinstance(state, EditOpen):
            return await self.submit(state.record, state.form)
        if isinstance(state, AddOpen):
            return await self.submit(None, state.form)
        raise InvalidTransition(f"No add or edit dialog is open (state: {state.kind})")

    async def confirm_delete(self) -> MutationOutcome:
        """Delete the record held by the open confirm-delete dialog."""

        state = self._dialogs.state
        if not isinstance(state, ConfirmDelete):
            raise InvalidTransition(f"No delete confirmation is open (state: {state.kind})")
        if state.record.id is None:
            raise InvalidTransition("The record awaiting deletion has no server-assigned id")
        return await self.remove(state.record.id)

    def _claim(self, origin: DialogState, operation: MutationKind) -> None:
        # one request per open dialog until it resolves
        if isinstance(origin, Closed):
            return
        if origin in self._pending:
            raise InvalidTransition(f"A {operation} request from the open {origin.kind} dialog is still in flight")
        self._pending.add(origin)

    def _succeeded(
        self,
        operation: MutationKind,
        origin: DialogState,
        *,
        user: Optional[User] = None,
        user_id: Optional[int] = None,
    ) -> MutationOutcome:
        refresh = self._cache.invalidate()
        message = SUCCESS_MESSAGES[operation]
        self._notifier.notify(Notification(title=message))
        self._dialogs.close(expected=origin)
        return MutationOutcome(
            operation=operation,
            ok=True,
            message=message,
            user=user,
            user_id=user_id,
            refresh=refresh,
        )

    def _failed(
        self,
        operation: MutationKind,
        exc: TransportFailure,
        *,
        user_id: Optional[int] = None,
    ) -> MutationOutcome:
        logger.warning("Mutation %s failed: %s", operation, exc.describe())
        self._notifier.notify(Notification(title=exc.message, variant="destructive"))
        return MutationOutcome(operation=operation, ok=False, message=exc.message, user_id=user_id)


__all__ = ["MutationCoordinator", "MutationOutcome", "SUCCESS_MESSAGES"]

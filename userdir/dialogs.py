"""Dialog state for the add, edit, and confirm-delete flows.

At most one dialog is active at a time. Each state is a frozen value; the
machine swaps states rather than toggling independent flags, so an edit and a
delete dialog can never be open together.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from .models import FormData, User

logger = logging.getLogger("userdir.dialogs")


class InvalidTransition(RuntimeError):
    """Raised when a dialog operation does not apply to the active state."""


@dataclass(frozen=True, eq=False)
class Closed:
    kind = "closed"


@dataclass(frozen=True, eq=False)
class AddOpen:
    form: FormData = field(default_factory=FormData.empty)
    kind = "add"


@dataclass(frozen=True, eq=False)
class EditOpen:
    record: User
    form: FormData
    kind = "edit"


@dataclass(frozen=True, eq=False)
class ConfirmDelete:
    record: User
    kind = "delete"


DialogState = Union[Closed, AddOpen, EditOpen, ConfirmDelete]

_FORM_FIELDS = ("name", "email", "department")


def _require_persisted(record: User) -> User:
    if record.id is None:
        raise InvalidTransition("Only records with a server-assigned id can be edited or deleted")
    return record


class InteractionStateMachine:
    """Tracks which dialog, if any, is active."""

    def __init__(self) -> None:
        self._state: DialogState = Closed()

    @property
    def state(self) -> DialogState:
        return self._state

    @property
    def is_open(self) -> bool:
        return not isinstance(self._state, Closed)

    @property
    def active_record(self) -> Optional[User]:
        if isinstance(self._state, (EditOpen, ConfirmDelete)):
            return self._state.record
        return None

    def open_add(self) -> AddOpen:
        return self._enter(AddOpen(form=FormData.empty()))

    def open_edit(self, record: User) -> EditOpen:
        _require_persisted(record)
        return self._enter(EditOpen(record=record, form=FormData.from_user(record)))

    def open_delete(self, record: User) -> ConfirmDelete:
        _require_persisted(record)
        return self._enter(ConfirmDelete(record=record))

    def cancel(self) -> DialogState:
        return self.close()

    def close(self, expected: DialogState | None = None) -> DialogState:
        """Return to :class:`Closed`, discarding any form data.

        When ``expected`` is given the dialog only closes if that exact state is
        still active; otherwise the call is a no-op and the active state is
        returned unchanged.
        """

        if expected is not None and expected is not self._state:
            logger.debug("Ignoring close for inactive %s dialog", expected.kind)
            return self._state
        if not isinstance(self._state, Closed):
            logger.debug("Closing %s dialog", self._state.kind)
            self._state = Closed()
        return self._state

    def update_form(self, **fields: str) -> FormData:
        """Edit fields of the active add or edit form."""

        state = self._state
        if not isinstance(state, (AddOpen, EditOpen)):
            raise InvalidTransition(f"No form is open in the {state.kind} state")
        unknown = set(fields) - set(_FORM_FIELDS)
        if unknown:
            raise ValueError(f"Unknown form fields: {', '.join(sorted(unknown))}")
        for name, value in fields.items():
            setattr(state.form, name, value)
        return state.form

    def _enter(self, new_state: DialogState) -> DialogState:
        if not isinstance(self._state, Closed):
            logger.debug("Replacing %s dialog with %s dialog", self._state.kind, new_state.kind)
        self._state = new_state
        return new_state


__all__ = [
    "AddOpen",
    "Closed",
    "ConfirmDelete",
    "DialogState",
    "EditOpen",
    "InteractionStateMachine",
    "InvalidTransition",
]

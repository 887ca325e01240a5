"""FastAPI stand-in for the remote user collection, kept entirely in memory."""
from __future__ import annotations

import itertools
import logging
import threading
from typing import Any, Dict, Iterable, List, Optional

from fastapi import APIRouter, FastAPI, HTTPException, status
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger("userdir.stub_server")

DEFAULT_PREFIX = "/users"


class CompanyPayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("company name must not be empty")
        return stripped


class UserPayload(BaseModel):
    id: Optional[int] = None
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=1, max_length=320)
    company: CompanyPayload

    @field_validator("name", "email")
    @classmethod
    def _strip_text(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("field must not be empty")
        return stripped


class UserRecord(BaseModel):
    id: int
    name: str
    email: str
    company: CompanyPayload


class UserStore:
    """Thread-safe ordered store assigning sequential ids."""

    def __init__(self, seed: Iterable[UserRecord] = ()) -> None:
        self._lock = threading.Lock()
        self._users: Dict[int, UserRecord] = {}
        for record in seed:
            self._users[record.id] = record
        start = max(self._users, default=0) + 1
        self._ids = itertools.count(start)

    def list(self) -> List[UserRecord]:
        with self._lock:
            return list(self._users.values())

    def create(self, payload: UserPayload) -> UserRecord:
        with self._lock:
            record = UserRecord(
                id=next(self._ids),
                name=payload.name,
                email=payload.email,
                company=payload.company,
            )
            self._users[record.id] = record
            return record

    def update(self, user_id: int, payload: UserPayload) -> UserRecord:
        with self._lock:
            if user_id not in self._users:
                raise KeyError(user_id)
            record = UserRecord(
                id=user_id,
                name=payload.name,
                email=payload.email,
                company=payload.company,
            )
            self._users[user_id] = record
            return record

    def delete(self, user_id: int) -> None:
        with self._lock:
            if self._users.pop(user_id, None) is None:
                raise KeyError(user_id)


def _not_found(user_id: int) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User {user_id} not found")


def create_app(
    *,
    seed: Iterable[UserRecord | Dict[str, object]] = (),
    prefix: str = DEFAULT_PREFIX,
) -> FastAPI:
    """Build the stub collection API, optionally pre-populated with ``seed``."""

    records = [item if isinstance(item, UserRecord) else UserRecord.model_validate(item) for item in seed]
    store = UserStore(records)

    app = FastAPI(
        title="User Directory Stub",
        description="In-memory implementation of the user collection REST contract",
        version="1.0.0",
    )
    app.state.store = store

    router = APIRouter(prefix=prefix)

    @router.get("", response_model=List[UserRecord])
    async def list_users() -> List[UserRecord]:
        return store.list()

    @router.post("", response_model=UserRecord, status_code=status.HTTP_201_CREATED)
    async def create_user(payload: UserPayload) -> UserRecord:
        record = store.create(payload)
        logger.info("Stub created user %s", record.id)
        return record

    @router.put("/{user_id}", response_model=UserRecord)
    async def update_user(user_id: int, payload: UserPayload) -> UserRecord:
        if payload.id is not None and payload.id != user_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Body id does not match the path id",
            )
        try:
            return store.update(user_id, payload)
        except KeyError:
            raise _not_found(user_id) from None

    @router.delete("/{user_id}")
    async def delete_user(user_id: int) -> Dict[str, Any]:
        try:
            store.delete(user_id)
        except KeyError:
            raise _not_found(user_id) from None
        logger.info("Stub deleted user %s", user_id)
        return {}

    app.include_router(router)
    return app


__all__ = ["UserPayload", "UserRecord", "UserStore", "create_app"]

"""HTTP client for the remote user collection REST API."""

from __future__ import annotations

import logging
from typing import Dict, List, Literal, Optional

import httpx

from .config import Settings
from .models import User

Operation = Literal["list", "create", "update", "delete"]

FAILURE_MESSAGES: Dict[str, str] = {
    "list": "Failed to fetch users",
    "create": "Failed to add user",
    "update": "Failed to update user",
    "delete": "Failed to delete user",
}

_JSON_HEADERS = {"Content-type": "application/json"}

logger = logging.getLogger("userdir.client")


class TransportFailure(RuntimeError):
    """Raised when a collection request cannot complete with a 2xx response."""

    def __init__(
        self,
        operation: str,
        *,
        status_code: int | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(FAILURE_MESSAGES.get(operation, f"Failed to {operation} users"))
        self.operation = operation
        self.status_code = status_code
        self.detail = detail

    @property
    def message(self) -> str:
        return str(self)

    def describe(self) -> str:
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"status {self.status_code}")
        if self.detail:
            parts.append(self.detail)
        return ": ".join(parts)


def _normalize_base_url(base_url: str) -> str:
    cleaned = (base_url or "").strip()
    if not cleaned:
        raise ValueError("API base URL must not be empty")
    return cleaned.rstrip("/")


def _build_endpoint(base_url: str, user_id: int | None = None) -> str:
    if user_id is None:
        return base_url
    return f"{base_url}/{user_id}"


def _extract_error_message(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        text = response.text.strip()
        return text[:200] or None
    if isinstance(payload, dict):
        for key in ("message", "detail", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


class RemoteCollectionClient:
    """Issue list/create/update/delete calls against the collection endpoint.

    Each call is attempted exactly once. Any transport error, non-2xx status,
    or unusable response body raises :class:`TransportFailure`.
    """

    def __init__(
        self,
        api_url: str,
        *,
        timeout: Optional[float] = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = _normalize_base_url(api_url)
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> "RemoteCollectionClient":
        return cls(settings.api_url, timeout=settings.timeout, http_client=http_client)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> "RemoteCollectionClient":
        return self

    async def __aexit__(self, *_exc_info) -> None:
        await self.aclose()

    async def list_users(self) -> List[User]:
        response = await self._request("list", "GET", _build_endpoint(self._base_url))
        payload = self._decode(response, "list")
        if not isinstance(payload, list):
            raise TransportFailure("list", status_code=response.status_code, detail="expected a JSON array")
        try:
            return [User.from_dict(item, partial=True) for item in payload]
        except ValueError as exc:
            raise TransportFailure("list", status_code=response.status_code, detail=str(exc)) from exc

    async def create_user(self, user: User) -> User:
        body = user.to_dict()
        body.pop("id", None)
        response = await self._request("create", "POST", _build_endpoint(self._base_url), json=body)
        return self._decode_user(response, "create")

    async def update_user(self, user: User) -> User:
        if user.id is None:
            raise ValueError("A user must have an id to be updated")
        response = await self._request(
            "update",
            "PUT",
            _build_endpoint(self._base_url, user.id),
            json=user.to_dict(),
        )
        return self._decode_user(response, "update")

    async def delete_user(self, user_id: int) -> None:
        await self._request("delete", "DELETE", _build_endpoint(self._base_url, user_id))

    async def _request(
        self,
        operation: Operation,
        method: str,
        url: str,
        *,
        json: Dict[str, object] | None = None,
    ) -> httpx.Response:
        try:
            response = await self._http.request(method, url, json=json, headers=_JSON_HEADERS)
        except httpx.RequestError as exc:
            raise TransportFailure(operation, detail=f"{type(exc).__name__}: {exc}") from exc

        if not response.is_success:
            raise TransportFailure(
                operation,
                status_code=response.status_code,
                detail=_extract_error_message(response),
            )

        logger.debug("%s %s -> %s", method, url, response.status_code)
        return response

    @staticmethod
    def _decode(response: httpx.Response, operation: Operation) -> object:
        try:
            return response.json()
        except ValueError as exc:
            raise TransportFailure(
                operation,
                status_code=response.status_code,
                detail="response body was not valid JSON",
            ) from exc

    def _decode_user(self, response: httpx.Response, operation: Operation) -> User:
        payload = self._decode(response, operation)
        try:
            return User.from_dict(payload)
        except ValueError as exc:
            raise TransportFailure(operation, status_code=response.status_code, detail=str(exc)) from exc


__all__ = ["FAILURE_MESSAGES", "RemoteCollectionClient", "TransportFailure"]

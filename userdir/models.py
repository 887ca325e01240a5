"""Domain models for directory records and the dialog form that edits them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional


def _require_text(data: Mapping[str, object], key: str, *, partial: bool = False) -> str:
    value = data.get(key)
    if value is None and partial:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"User payload field '{key}' must be a string")
    return value


@dataclass(frozen=True)
class Company:
    """Department a user belongs to."""

    name: str

    @staticmethod
    def from_dict(data: object, *, partial: bool = False) -> "Company":
        if data is None and partial:
            return Company(name="")
        if not isinstance(data, Mapping):
            raise ValueError("User payload field 'company' must be an object")
        return Company(name=_require_text(data, "name", partial=partial))

    def to_dict(self) -> Dict[str, object]:
        return {"name": self.name}


@dataclass(frozen=True)
class User:
    """A directory entry as stored by the remote collection.

    ``id`` is assigned by the server and is ``None`` for a record that has not
    been created yet.
    """

    name: str
    email: str
    company: Company
    id: Optional[int] = None

    @staticmethod
    def from_dict(data: object, *, partial: bool = False) -> "User":
        """Build a :class:`User` from decoded JSON, rejecting malformed payloads.

        With ``partial`` set, missing or null text fields read as ``""`` and a
        missing company as a company with an empty name. Such records stay in
        the directory but never match a non-empty search.
        """

        if not isinstance(data, Mapping):
            raise ValueError("User payload must be an object")

        raw_id = data.get("id")
        if raw_id is not None and (isinstance(raw_id, bool) or not isinstance(raw_id, int)):
            raise ValueError("User payload field 'id' must be an integer")

        return User(
            id=raw_id,
            name=_require_text(data, "name", partial=partial),
            email=_require_text(data, "email", partial=partial),
            company=Company.from_dict(data.get("company"), partial=partial),
        )

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "name": self.name,
            "email": self.email,
            "company": self.company.to_dict(),
        }
        if self.id is not None:
            payload["id"] = self.id
        return payload


@dataclass
class FormData:
    """Editable text fields owned by an open add or edit dialog."""

    name: str = ""
    email: str = ""
    department: str = ""

    @staticmethod
    def empty() -> "FormData":
        return FormData()

    @staticmethod
    def from_user(user: User) -> "FormData":
        return FormData(
            name=user.name or "",
            email=user.email or "",
            department=user.company.name or "",
        )

    def copy(self) -> "FormData":
        return FormData(name=self.name, email=self.email, department=self.department)

    def missing_fields(self) -> List[str]:
        """Return the names of required fields that are blank."""

        return [
            field_name
            for field_name in ("name", "email", "department")
            if not getattr(self, field_name).strip()
        ]

    def to_user(self, user_id: Optional[int] = None) -> User:
        return User(
            id=user_id,
            name=self.name,
            email=self.email,
            company=Company(name=self.department),
        )


__all__ = ["Company", "FormData", "User"]

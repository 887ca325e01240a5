"""Search predicate used to derive the visible subset of the directory."""

from __future__ import annotations

from typing import Iterable, List, Optional

from .models import User


def _contains(haystack: Optional[str], needle: str) -> bool:
    if not haystack:
        return False
    return needle in haystack.lower()


def matches(user: User, query: str) -> bool:
    """Return ``True`` when ``query`` occurs in the user's name, email, or department."""

    if not query:
        return True
    needle = query.lower()
    department = user.company.name if user.company is not None else None
    return (
        _contains(user.name, needle)
        or _contains(user.email, needle)
        or _contains(department, needle)
    )


def filter_users(records: Iterable[User], query: str) -> List[User]:
    """Return the records matching ``query`` case-insensitively, in input order."""

    return [user for user in records if matches(user, query)]


__all__ = ["filter_users", "matches"]

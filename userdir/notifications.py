"""Notification values emitted on every fetch failure and mutation outcome."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Literal, Optional, Protocol

Variant = Literal["destructive"]

logger = logging.getLogger("userdir.notifications")


@dataclass(frozen=True)
class Notification:
    """A short message for the operator, optionally flagged as destructive."""

    title: str
    variant: Optional[Variant] = None

    @property
    def is_destructive(self) -> bool:
        return self.variant == "destructive"

    def to_dict(self) -> dict:
        payload: dict = {"title": self.title}
        if self.variant is not None:
            payload["variant"] = self.variant
        return payload


class NotificationSink(Protocol):
    def notify(self, notification: Notification) -> None:
        ...


class LoggingNotifier:
    """Default sink that writes notifications to the log."""

    def notify(self, notification: Notification) -> None:
        if notification.is_destructive:
            logger.warning("%s", notification.title)
        else:
            logger.info("%s", notification.title)


class CollectingNotifier:
    """Keeps every notification so a front end can drain and display them."""

    def __init__(self) -> None:
        self.notifications: List[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    def drain(self) -> List[Notification]:
        pending, self.notifications = self.notifications, []
        return pending

    @property
    def titles(self) -> List[str]:
        return [item.title for item in self.notifications]


__all__ = [
    "CollectingNotifier",
    "LoggingNotifier",
    "Notification",
    "NotificationSink",
]

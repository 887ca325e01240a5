"""Client-side synchronization core for a remote user directory."""

from __future__ import annotations

from typing import Any

from .cache import CacheStatus, CollectionCache, Snapshot
from .client import RemoteCollectionClient, TransportFailure
from .config import ConfigurationError, Settings, load_settings
from .coordinator import MutationCoordinator, MutationOutcome
from .dialogs import AddOpen, Closed, ConfirmDelete, EditOpen, InteractionStateMachine, InvalidTransition
from .filters import filter_users
from .models import Company, FormData, User
from .notifications import CollectingNotifier, LoggingNotifier, Notification
from .session import DirectorySession


def create_stub_app(*args: Any, **kwargs: Any):
    """Factory function for the in-memory stub backend."""

    from .stub_server import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "AddOpen",
    "CacheStatus",
    "Closed",
    "CollectingNotifier",
    "CollectionCache",
    "Company",
    "ConfigurationError",
    "ConfirmDelete",
    "DirectorySession",
    "EditOpen",
    "FormData",
    "InteractionStateMachine",
    "InvalidTransition",
    "LoggingNotifier",
    "MutationCoordinator",
    "MutationOutcome",
    "Notification",
    "RemoteCollectionClient",
    "Settings",
    "Snapshot",
    "TransportFailure",
    "User",
    "create_stub_app",
    "filter_users",
    "load_settings",
]

import sys
from pathlib import Path
from typing import Callable, Iterable, Optional

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from userdir.config import Settings
from userdir.notifications import CollectingNotifier
from userdir.session import DirectorySession
from userdir.stub_server import create_app

STUB_API_URL = "http://stub.test/users"

ANN = {"id": 1, "name": "Ann", "email": "a@x.com", "company": {"name": "Ops"}}
CARL = {"id": 3, "name": "Carl", "email": "carl@example.com", "company": {"name": "Finance"}}


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def notifier() -> CollectingNotifier:
    return CollectingNotifier()


@pytest.fixture()
def stub_session(notifier: CollectingNotifier) -> Callable[..., DirectorySession]:
    """Build a session whose HTTP traffic goes to an in-process stub backend."""

    def _build(seed: Iterable[dict] = (ANN,), *, app=None) -> DirectorySession:
        stub = app if app is not None else create_app(seed=seed)
        http_client = httpx.AsyncClient(transport=httpx.ASGITransport(app=stub))
        return DirectorySession(
            Settings(api_url=STUB_API_URL),
            notifier=notifier,
            http_client=http_client,
        )

    return _build


def make_mock_client(handler, api_url: str = STUB_API_URL, timeout: Optional[float] = None):
    from userdir.client import RemoteCollectionClient

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RemoteCollectionClient(api_url, timeout=timeout, http_client=http_client)

"""Test fixtures — a fresh notification service per test, HTTP clients over ASGI.

Learn: httpx's ASGITransport doesn't run the app lifespan, so the
service the lifespan would build is injected by overriding the
get_notification_service dependency instead. Same trick for auth: the
`client` fixture overrides get_current_user so tests don't need to
mint tokens; `unauthenticated_client` leaves the real JWT path in place.
"""

import asyncio

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sse_starlette.sse import AppStatus

from loveforu.main import app
from loveforu.services.notification_service import (
    ChatNotificationService,
    get_notification_service,
)

TEST_USER_ID = "U-alice"


async def eventually(predicate, timeout: float = 2.0) -> None:
    """Poll `predicate` until it is truthy, yielding to the event loop."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


@pytest.fixture()
def service():
    """Fresh ChatNotificationService, closed after the test."""
    svc = ChatNotificationService()
    yield svc
    svc.close()


@pytest_asyncio.fixture()
async def client(service):
    """HTTP client with the notification service and auth overridden."""
    from loveforu.auth.dependencies import CurrentIdentity, get_current_user

    def override_get_current_user():
        return CurrentIdentity(user_id=TEST_USER_ID, display_name="Alice")

    app.dependency_overrides[get_notification_service] = lambda: service
    app.dependency_overrides[get_current_user] = override_get_current_user

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def unauthenticated_client(service):
    """HTTP client WITHOUT auth override — for testing the real JWT path."""
    app.dependency_overrides[get_notification_service] = lambda: service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_sse_exit_state():
    """sse-starlette keeps its exit flag and event at class level; reset per test."""
    AppStatus.should_exit = False
    AppStatus.should_exit_event = None
    yield
    AppStatus.should_exit = False
    AppStatus.should_exit_event = None


@pytest.fixture()
def asgi_app(service):
    """The app with overrides in place, for tests that speak raw ASGI.

    httpx's ASGITransport insists the response finished; a stream cut
    short by disconnect or server exit never sends its final body.
    """
    from loveforu.auth.dependencies import CurrentIdentity, get_current_user

    app.dependency_overrides[get_notification_service] = lambda: service
    app.dependency_overrides[get_current_user] = lambda: CurrentIdentity(
        user_id=TEST_USER_ID
    )
    yield app
    app.dependency_overrides.clear()


class ASGIConnection:
    """One GET request driven by hand: records sent messages, disconnects on demand."""

    def __init__(self, path: str):
        self.scope = {
            "type": "http",
            "asgi": {"version": "3.0", "spec_version": "2.4"},
            "http_version": "1.1",
            "method": "GET",
            "scheme": "http",
            "path": path,
            "raw_path": path.encode(),
            "root_path": "",
            "query_string": b"",
            "headers": [(b"host", b"test")],
            "client": ("127.0.0.1", 50000),
            "server": ("test", 80),
        }
        self.sent: list[dict] = []
        self._request_sent = False
        self._disconnected = asyncio.Event()

    async def receive(self) -> dict:
        if not self._request_sent:
            self._request_sent = True
            return {"type": "http.request", "body": b"", "more_body": False}
        await self._disconnected.wait()
        return {"type": "http.disconnect"}

    async def send(self, message: dict) -> None:
        self.sent.append(message)

    def disconnect(self) -> None:
        self._disconnected.set()

    @property
    def status(self):
        for message in self.sent:
            if message["type"] == "http.response.start":
                return message["status"]
        return None

    @property
    def body(self) -> bytes:
        return b"".join(
            m.get("body", b"") for m in self.sent if m["type"] == "http.response.body"
        )

"""Shared fixtures: a controllable clock and a scripted identity service."""

import threading
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


class IdentityServer:
    """httpx handler answering identity requests from a script.

    Queued responders are consumed in order; once the queue is empty every
    request goes to ``default``. A responder is called with the request and
    returns a fresh response, or raises to simulate a transport failure.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.queue: list[Any] = []
        self.default: Any = None
        self.delay: float = 0.0
        self._lock = threading.Lock()

    def handler(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
            item = self.queue.pop(0) if self.queue else self.default
        if self.delay:
            time.sleep(self.delay)
        return item(request)

    def reply(self, status_code: int, **kwargs: Any) -> None:
        """Queue one response built from httpx.Response arguments."""
        self.queue.append(lambda request: httpx.Response(status_code, **kwargs))

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def call_count(self) -> int:
        return len(self.requests)


def build_auth_payload(
    token: str = "tok-1",
    expires: str = "2024-01-01T01:00:00.000Z",
    tenant_id: str | None = "12345",
    tenant_name: str = "12345",
) -> dict[str, Any]:
    token_body: dict[str, Any] = {"id": token, "expires": expires}
    if tenant_id is not None:
        token_body["tenant"] = {"id": tenant_id, "name": tenant_name}
    return {
        "access": {
            "token": token_body,
            "serviceCatalog": [
                {
                    "name": "cloudServersOpenStack",
                    "type": "compute",
                    "endpoints": [
                        {
                            "region": "DFW",
                            "tenantId": "12345",
                            "publicURL": "https://dfw.servers.api.rackspacecloud.com/v2/12345",
                            "versionId": "2",
                            "versionInfo": "https://dfw.servers.api.rackspacecloud.com/v2",
                            "versionList": "https://dfw.servers.api.rackspacecloud.com/",
                        },
                        {
                            "region": "ORD",
                            "tenantId": "12345",
                            "publicURL": "https://ord.servers.api.rackspacecloud.com/v2/12345",
                        },
                    ],
                },
                {
                    "name": "cloudMonitoring",
                    "type": "rax:monitor",
                    "endpoints": [
                        {
                            "tenantId": "12345",
                            "publicURL": "https://monitoring.api.rackspacecloud.com/v1.0/12345",
                        },
                    ],
                },
            ],
            "user": {
                "id": "172157",
                "name": "alice",
                "RAX-AUTH:defaultRegion": "DFW",
                "roles": [
                    {
                        "id": "3",
                        "name": "identity:user-admin",
                        "description": "User Admin Role.",
                    },
                ],
            },
        },
    }


@pytest.fixture
def clock() -> FakeClock:
    """Clock frozen at 2024-01-01T00:00:00Z."""
    return FakeClock()


@pytest.fixture
def auth_payload() -> Callable[..., dict[str, Any]]:
    """Factory for identity response bodies (token expires at 01:00Z)."""
    return build_auth_payload


@pytest.fixture
def identity_server() -> IdentityServer:
    """Identity service answering every login with a one-hour token."""
    server = IdentityServer()
    server.default = lambda request: httpx.Response(200, json=build_auth_payload())
    return server

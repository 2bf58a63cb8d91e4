"""Common fixtures: a stub Growatt panel served through httpx.MockTransport."""

from urllib.parse import parse_qs

import httpx
import pytest
import pytest_asyncio

from growatt_client import GrowattClient

SERVER_URL = "https://panel.test/"

LOGIN_OK = {"result": 1, "msg": "OK", "user": {"id": 42, "accountName": "user"}}
LOGIN_COOKIES = [
    ("set-cookie", "JSESSIONID=ABC123; Path=/; HttpOnly"),
    ("set-cookie", "SERVERID=srv1|1700000000|1700000000; Path=/"),
]

MIX_OBJ = {
    "status": "5",
    "SOC": "87",
    "chargePower": "0",
    "pdisCharge1": 0.42,
    "ppv": "1.8",
    "pPv1": "1.2",
    "pPv2": "0.6",
    "vPv1": "310.5",
    "vPv2": "298.1",
    "pLocalLoad": 1.1,
    "pactouser": 0,
    "pactogrid": "0.3",
    "vAc1": "231.4",
    "fAc": "50.01",
    "vBat": "52.3",
    "lost": False,
}


def form(request: httpx.Request) -> dict[str, str]:
    """Decode a form-encoded request body."""
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


class StubPanel:
    """Routes requests by path and records every request it sees."""

    def __init__(self):
        self.routes = {}
        self.requests: list[httpx.Request] = []

    def reply(self, path: str, status_code: int = 200, **kwargs):
        self.routes[path] = lambda request: httpx.Response(status_code, **kwargs)

    def route(self, path: str, handler):
        self.routes[path] = handler

    def fail(self, path: str, exc: Exception):
        def raise_(request):
            raise exc
        self.routes[path] = raise_

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404)
        return route(request)

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


@pytest.fixture
def panel() -> StubPanel:
    stub = StubPanel()
    stub.reply("/login", json=LOGIN_OK, headers=LOGIN_COOKIES)
    return stub


@pytest_asyncio.fixture
async def client(panel):
    client = GrowattClient(server_url=SERVER_URL, transport=httpx.MockTransport(panel.handler))
    yield client
    await client.close()

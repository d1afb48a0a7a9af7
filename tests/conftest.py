"""
Shared pytest fixtures.

Offline tests talk to a scripted fake panel through ``httpx.MockTransport``.
Live tests use ``live_client``, which needs a panel configured in ``.env``.
"""
import asyncio
import json
import os
from collections import defaultdict, deque
from typing import Any, Callable, Deque, Dict, List, Tuple, Union

import dotenv
import httpx
import pytest

from xui_client import ClientOptions, XUIClient

# Load environment variables from the project root
env_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), ".env")
dotenv.load_dotenv(env_path)

BASE_URL = "https://panel.test:2053/secret"
CLIENT_UUID = "5f1c1c0e-54a9-4f5e-9a39-0b8e6a1b9c11"

Reply = Union[Dict[str, Any], httpx.Response, Callable[[httpx.Request], httpx.Response]]


def ok(obj: Any = None, msg: str = "") -> Dict[str, Any]:
    """A successful envelope."""
    return {"success": True, "msg": msg, "obj": obj}


def fail(msg: str) -> Dict[str, Any]:
    return {"success": False, "msg": msg, "obj": None}


class FakePanel:
    """Scripted panel: replies are queued per ``(method, raw path)``.

    A reply is a dict (sent as a 200 JSON body), an ``httpx.Response`` or a
    callable taking the request. The last reply of a route is repeated once
    the queue runs dry. Every request is recorded in ``requests``.
    """

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], Deque[Reply]] = defaultdict(deque)
        self.requests: List[httpx.Request] = []
        self.transport = httpx.MockTransport(self.handle)

    def on(self, method: str, path: str, *replies: Reply) -> "FakePanel":
        self.routes[(method.upper(), path)].extend(replies)
        return self

    def on_get(self, path: str, *replies: Reply) -> "FakePanel":
        return self.on("GET", path, *replies)

    def on_post(self, path: str, *replies: Reply) -> "FakePanel":
        return self.on("POST", path, *replies)

    def handle(self, request: httpx.Request) -> httpx.Response:
        # the body must be read before it is recorded, MockTransport hands over a stream
        request.read()
        self.requests.append(request)
        key = (request.method, request.url.raw_path.decode("ascii"))
        queue = self.routes.get(key)
        if not queue:
            return httpx.Response(404, text="404 page not found")
        reply = queue.popleft() if len(queue) > 1 else queue[0]
        if callable(reply):
            return reply(request)
        if isinstance(reply, httpx.Response):
            # fresh copy so a repeated reply can be read again
            return httpx.Response(reply.status_code, headers=reply.headers, content=reply.content)
        return httpx.Response(200, json=reply)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.raw_path.decode("ascii") == path]

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> Any:
        return json.loads(self.last.content)


def api_path(*segments: str) -> str:
    return "/secret/panel/api/" + "/".join(segments)


def login_reply(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json=ok(), headers={"Set-Cookie": "3x-ui=session-token; Path=/"})


@pytest.fixture
def panel() -> FakePanel:
    return FakePanel().on_post("/secret/login", login_reply)


@pytest.fixture
def sleeps(monkeypatch) -> List[float]:
    """Record backoff sleeps instead of waiting."""
    recorded: List[float] = []
    real_sleep = asyncio.sleep

    async def fake_sleep(delay, *args, **kwargs):
        recorded.append(delay)
        await real_sleep(0)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return recorded


@pytest.fixture
async def xui_client(panel: FakePanel, sleeps) -> XUIClient:
    """A logged-in client wired to the fake panel."""
    client = await XUIClient.create(BASE_URL, "admin", "secret", transport=panel.transport,
                                    options=ClientOptions())
    yield client
    await client.disconnect()


@pytest.fixture
async def live_client() -> XUIClient:
    """
    Create and authenticate an XUIClient against a real panel.
    Skips unless PANEL_BASE_URL, PANEL_USERNAME and PANEL_PASSWORD are set.
    """
    base_url = os.getenv("PANEL_BASE_URL")
    username = os.getenv("PANEL_USERNAME")
    password = os.getenv("PANEL_PASSWORD")

    if not all([base_url, username, password]):
        pytest.skip("Environment variables for XUIClient not configured (.env file required)")

    async with XUIClient(base_url, username, password, two_fac_code=os.getenv("PANEL_2FA_CODE")) as client:
        yield client


def inbound_payload(**overrides) -> Dict[str, Any]:
    """A VLESS inbound as the panel lists it, packed fields included."""
    settings = {
        "clients": [{
            "id": CLIENT_UUID,
            "email": "foo@x",
            "flow": "xtls-rprx-vision",
            "limitIp": 0,
            "totalGB": 0,
            "expiryTime": 0,
            "enable": True,
            "tgId": "",
            "subId": "abcdefgh12345678",
            "comment": "",
            "reset": 0,
        }],
        "decryption": "none",
        "fallbacks": [],
    }
    payload = {
        "id": 3,
        "up": 10,
        "down": 20,
        "total": 0,
        "allTime": 30,
        "remark": "main",
        "enable": True,
        "expiryTime": 0,
        "trafficReset": "never",
        "lastTrafficResetTime": 0,
        "clientStats": None,
        "listen": "",
        "port": 443,
        "protocol": "vless",
        "settings": json.dumps(settings),
        "streamSettings": json.dumps({"network": "tcp", "security": "reality",
                                      "realitySettings": {"serverNames": ["example.com"], "shortIds": ["ab"]},
                                      "tcpSettings": {"header": {"type": "none"}}}),
        "tag": "inbound-443",
        "sniffing": json.dumps({"enabled": True, "destOverride": ["http", "tls"],
                                "metadataOnly": False, "routeOnly": False}),
        "allocate": json.dumps({"strategy": "always", "refresh": 5, "concurrency": 3}),
    }
    payload.update(overrides)
    return payload

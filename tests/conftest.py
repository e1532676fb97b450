"""
Fixtures y dobles compartidos por la suite.

- FakeServer: el servicio REST en memoria, servido con httpx.MockTransport.
- FakeConnector / FakeSocket: reemplazan a websockets.connect para el transporte push.
"""

import asyncio
import itertools
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx
import pytest

from notification_client.infra.api_client import NotificationApi
from notification_client.infra.push_transport import PushTransport
from notification_client.models.notification import NotificationRecord
from notification_client.services.client import NotificationClient
from notification_client.services.notification_surface import NotificationSurface

BASE_URL = "http://testserver/api"
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# Helpers
# ============================================================================


def make_record(
    notification_id: str,
    status: str = "unread",
    minutes_ago: int = 0,
    type: str = "like",
    title: Optional[str] = None,
    **extra,
) -> NotificationRecord:
    return NotificationRecord(
        id=notification_id,
        type=type,
        title=title or f"Notification {notification_id}",
        content=f"content of {notification_id}",
        status=status,
        createdAt=NOW - timedelta(minutes=minutes_ago),
        **extra,
    )


def record_payload(notification_id: str, status: str = "unread", minutes_ago: int = 0, **extra) -> Dict[str, Any]:
    """Lo que manda el servidor: `_id` y fechas ISO."""
    payload = {
        "_id": notification_id,
        "type": "like",
        "title": f"Notification {notification_id}",
        "content": f"content of {notification_id}",
        "status": status,
        "createdAt": (NOW - timedelta(minutes=minutes_ago)).isoformat(),
    }
    payload.update(extra)
    return payload


async def wait_until(predicate, timeout: float = 1.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


# ============================================================================
# REST en memoria
# ============================================================================


class FakeServer:
    def __init__(self):
        self.users: List[dict] = []
        self.posts: List[dict] = []
        self.notifications: Dict[str, List[dict]] = {}
        self.requests: List[httpx.Request] = []
        self.gates: Dict[str, asyncio.Event] = {}
        self.failures: Dict[tuple, Any] = {}
        self.on_notification = None
        self._ids = itertools.count(1)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def add_user(self, user_id: str, username: str) -> dict:
        user = {"_id": user_id, "username": username, "email": f"{username}@example.com"}
        self.users.append(user)
        self.notifications.setdefault(user_id, [])
        return user

    def add_post(self, post_id: str, user_id: str, title: str) -> dict:
        post = {"_id": post_id, "userId": user_id, "title": title, "createdAt": NOW.isoformat()}
        self.posts.append(post)
        return post

    def add_notification(self, user_id: str, notification_id: str, status: str = "unread", minutes_ago: int = 0) -> dict:
        payload = record_payload(notification_id, status=status, minutes_ago=minutes_ago, userId=user_id)
        self.notifications.setdefault(user_id, []).insert(0, payload)
        return payload

    def unread(self, user_id: str) -> int:
        return sum(1 for n in self.notifications.get(user_id, []) if n["status"] == "unread")

    def fail(self, method: str, path: str, result):
        """result: código HTTP o una excepción de httpx."""
        self.failures[(method, path)] = result

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        method = request.method
        path = request.url.path.removeprefix("/api")

        if (method, path) in self.failures:
            result = self.failures[(method, path)]
            if isinstance(result, Exception):
                raise result
            return httpx.Response(result, json={"error": "boom"})

        parts = path.strip("/").split("/")
        body = json.loads(request.content) if request.content else None

        if parts == ["users"]:
            if method == "GET":
                return httpx.Response(200, json=self.users)
            user = self.add_user(f"u{next(self._ids)}", body["username"])
            return httpx.Response(201, json=user)

        if parts == ["posts"]:
            if method == "GET":
                user_id = request.url.params.get("userId")
                return httpx.Response(200, json=[p for p in self.posts if p["userId"] == user_id])
            post = self.add_post(f"p{next(self._ids)}", body["userId"], body["title"])
            return httpx.Response(201, json=post)

        if parts[0] == "notifications":
            if method == "GET":
                user_id = parts[1]
                gate = self.gates.get(user_id)
                if gate is not None:
                    await gate.wait()
                if len(parts) == 3 and parts[2] == "count":
                    return httpx.Response(200, json={"count": self.unread(user_id)})
                return httpx.Response(200, json=list(self.notifications.get(user_id, [])))

            if method == "PATCH" and len(parts) == 3 and parts[2] == "read":
                for rows in self.notifications.values():
                    for row in rows:
                        if row["_id"] == parts[1]:
                            row["status"] = "read"
                            return httpx.Response(200, json=row)
                return httpx.Response(404, json={"error": "Notification not found"})

            if method == "DELETE" and parts[1] == "clear":
                self.notifications[parts[2]] = []
                return httpx.Response(200, json={"message": "cleared"})

        if parts == ["events"] and method == "POST":
            return await self._create_event(body)

        return httpx.Response(404, json={"error": "not found"})

    async def _create_event(self, body: dict) -> httpx.Response:
        source = next(u for u in self.users if u["_id"] == body["sourceUserId"])
        target_id = body["targetUserId"]
        titles = {"like": "New like", "comment": "New comment", "follow": "New follower"}
        contents = {
            "like": f'{source["username"]} liked your post "{body["data"].get("entityTitle", "")}"',
            "comment": f'{source["username"]} commented: {body["data"].get("commentText", "")}',
            "follow": f'{source["username"]} started following you',
        }
        notification = {
            "_id": f"n{next(self._ids)}",
            "type": body["type"],
            "title": titles[body["type"]],
            "content": contents[body["type"]],
            "status": "unread",
            "createdAt": NOW.isoformat(),
            "userId": target_id,
            "sourceUser": {"_id": source["_id"], "username": source["username"]},
        }
        self.notifications.setdefault(target_id, []).insert(0, notification)
        if self.on_notification is not None:
            self.on_notification(target_id, notification)
        return httpx.Response(201, json={"message": "Event processed"})


# ============================================================================
# Push en memoria
# ============================================================================


class FakeSocket:
    def __init__(self):
        self.sent: List[dict] = []
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.closed = True
        return False

    async def send(self, data: str):
        self.sent.append(json.loads(data))

    def push(self, event: str, data: Any):
        self.incoming.put_nowait(json.dumps({"event": event, "data": data}))

    def push_raw(self, raw: str):
        self.incoming.put_nowait(raw)

    def drop(self):
        # se cae la red
        self.incoming.put_nowait(OSError("network lost"))

    def close(self):
        self.incoming.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self.incoming.get()
        if item is None:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item


class _Refused:
    async def __aenter__(self):
        raise ConnectionRefusedError("refused")

    async def __aexit__(self, *exc):
        return False


class FakeConnector:
    def __init__(self, failures: int = 0):
        self.failures = failures
        self.attempts = 0
        self.urls: List[str] = []
        self.sockets: List[FakeSocket] = []

    def __call__(self, url: str):
        self.attempts += 1
        self.urls.append(url)
        if self.failures:
            self.failures -= 1
            return _Refused()
        socket = FakeSocket()
        self.sockets.append(socket)
        return socket

    @property
    def socket(self) -> FakeSocket:
        return self.sockets[-1]


class RecordingSurface(NotificationSurface):
    def __init__(self, permission: str = "granted"):
        super().__init__(permission)
        self.alerts: List[tuple] = []
        self.asked = 0

    def _ask(self):
        self.asked += 1

    def notify(self, title: str, content: str):
        self.alerts.append((title, content))


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def server():
    server = FakeServer()
    server.add_user("alice", "alice")
    server.add_user("bob", "bob")
    return server


@pytest.fixture
async def api(server):
    api = NotificationApi(BASE_URL, transport=server.transport)
    yield api
    await api.aclose()


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
async def transport(connector):
    transport = PushTransport("ws://testserver/ws/notifications", connector=connector, backoff=0.01)
    yield transport
    await transport.disconnect()


@pytest.fixture
def surface():
    return RecordingSurface()


@pytest.fixture
async def client(api, transport, surface):
    client = NotificationClient(api=api, transport=transport, surface=surface)
    yield client
    await client.transport.disconnect()
    await client.queue.stop()

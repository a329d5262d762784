"""
Unit tests for the event stream endpoint.

The stream never ends on its own, so the app is driven through a minimal
ASGI harness that can deliver http.disconnect instead of TestClient.

Tests:
- Streaming headers and allow-origin selection
- Connected frame followed by broadcasts
- Unregistration on client disconnect

@testCovers chronicle_api/routers/events.py
"""

import asyncio
import json
import unittest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from chronicle_api.main import app
from chronicle_api.lib.dependencies import get_event_hub, get_origin_policy
from chronicle_api.lib.event_hub import EventHub
from chronicle_api.lib.origin_policy import OriginPolicy


class StreamClient:
    """Opens one GET request against an ASGI app and reads SSE frames."""

    def __init__(self, asgi_app, path, origin=None):
        self.asgi_app = asgi_app
        self.path = path
        self.origin = origin
        self.messages: asyncio.Queue = asyncio.Queue()
        self.disconnected = asyncio.Event()
        self.request_sent = False
        self.buffer = ''
        self.task = None

    async def _receive(self):
        if not self.request_sent:
            self.request_sent = True
            return {"type": "http.request", "body": b"", "more_body": False}
        await self.disconnected.wait()
        return {"type": "http.disconnect"}

    async def _send(self, message):
        await self.messages.put(message)

    async def open(self):
        """Start the request and return (status, headers)."""
        headers = [(b"host", b"testserver")]
        if self.origin:
            headers.append((b"origin", self.origin.encode()))
        scope = {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": "GET",
            "scheme": "http",
            "path": self.path,
            "raw_path": self.path.encode(),
            "query_string": b"",
            "root_path": "",
            "headers": headers,
            "client": ("127.0.0.1", 50000),
            "server": ("testserver", 80),
        }
        self.task = asyncio.create_task(self.asgi_app(scope, self._receive, self._send))
        start = await asyncio.wait_for(self.messages.get(), 2.0)
        assert start["type"] == "http.response.start"
        return start["status"], {k.decode().lower(): v.decode() for k, v in start["headers"]}

    async def next_frame(self):
        """Return the next complete SSE frame."""
        while '\n\n' not in self.buffer:
            message = await asyncio.wait_for(self.messages.get(), 2.0)
            self.buffer += message.get("body", b"").decode()
        frame, self.buffer = self.buffer.split('\n\n', 1)
        return frame

    async def next_envelope(self):
        frame = await self.next_frame()
        assert frame.startswith('data: '), frame
        return json.loads(frame[len('data: '):])

    async def close(self):
        self.disconnected.set()
        await asyncio.wait_for(self.task, 2.0)


class TestEventsEndpoint(unittest.IsolatedAsyncioTestCase):
    """Test GET /api/events/stream."""

    def setUp(self):
        self.hub = EventHub()
        self.policy = OriginPolicy(allowed_origins=("http://localhost:8080",))
        app.dependency_overrides[get_event_hub] = lambda: self.hub
        app.dependency_overrides[get_origin_policy] = lambda: self.policy

    def tearDown(self):
        app.dependency_overrides.clear()

    async def test_stream_headers(self):
        client = StreamClient(app, "/api/events/stream", origin="http://localhost:8080/")

        status, headers = await client.open()
        await client.next_frame()
        await client.close()

        self.assertEqual(status, 200)
        self.assertTrue(headers["content-type"].startswith("text/event-stream"))
        self.assertEqual(headers["cache-control"], "no-cache")
        self.assertEqual(headers["connection"], "keep-alive")
        self.assertEqual(headers["access-control-allow-origin"], "http://localhost:8080")
        self.assertEqual(headers["access-control-allow-credentials"], "true")

    async def test_disallowed_origin_gets_first_allowed_origin(self):
        client = StreamClient(app, "/api/events/stream", origin="http://evil.example")

        status, headers = await client.open()
        await client.next_frame()
        await client.close()

        self.assertEqual(status, 200)
        self.assertEqual(headers["access-control-allow-origin"], "http://localhost:8080")

    async def test_connected_then_broadcast(self):
        client = StreamClient(app, "/api/events/stream", origin="http://localhost:8080")
        await client.open()

        first = await client.next_envelope()
        self.assertEqual(first["type"], "connected")
        self.assertEqual(self.hub.count(), 1)

        await asyncio.sleep(0.01)
        self.hub.broadcast("new-blog", {"id": "abc"})

        second = await client.next_envelope()
        self.assertEqual(second["type"], "new-blog")
        self.assertEqual(second["data"]["id"], "abc")
        self.assertNotEqual(second["timestamp"], first["timestamp"])

        await client.close()

    async def test_broadcast_order(self):
        client = StreamClient(app, "/api/events/stream")
        await client.open()
        await client.next_envelope()

        self.hub.broadcast("a", {"n": 1})
        self.hub.broadcast("b", {"n": 2})

        self.assertEqual((await client.next_envelope())["type"], "a")
        self.assertEqual((await client.next_envelope())["type"], "b")

        await client.close()

    async def test_disconnect_unregisters(self):
        clients = [StreamClient(app, "/api/events/stream") for _ in range(3)]
        for client in clients:
            await client.open()
            await client.next_envelope()
        self.assertEqual(self.hub.count(), 3)

        await clients[0].close()
        self.assertEqual(self.hub.count(), 2)

        self.assertEqual(self.hub.broadcast("new-blog", {"id": "abc"}), 2)
        for client in clients[1:]:
            self.assertEqual((await client.next_envelope())["type"], "new-blog")
            await client.close()

        self.assertEqual(self.hub.count(), 0)


if __name__ == '__main__':
    unittest.main()

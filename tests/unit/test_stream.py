import asyncio
import json
import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "core"))
sys.path.insert(0, str(ROOT / "packages" / "relay"))
sys.path.insert(0, str(ROOT / "packages" / "telemetry"))

from websockets.asyncio.client import connect

from holodash_relay.hub import BroadcastHub
from holodash_relay.stream import WELCOME_MESSAGE, StreamServer


class StreamServerTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.hub = BroadcastHub()
        self.server = StreamServer(self.hub, host="127.0.0.1", port=0)
        ws_server = await self.server.start()
        self.port = next(iter(ws_server.sockets)).getsockname()[1]
        self.url = f"ws://127.0.0.1:{self.port}"

    async def asyncTearDown(self):
        await self.server.close()

    async def _wait_for_subscribers(self, count: int) -> None:
        for _ in range(200):
            if self.hub.subscriber_count == count:
                return
            await asyncio.sleep(0.01)
        self.fail(f"expected {count} subscribers, have {self.hub.subscriber_count}")

    async def test_welcome_then_snapshots(self):
        async with connect(self.url) as ws:
            welcome = json.loads(await asyncio.wait_for(ws.recv(), timeout=2))
            self.assertEqual(welcome, {"type": "connected", "message": WELCOME_MESSAGE})

            await self._wait_for_subscribers(1)
            self.hub.publish('{"cpu_usage": 1.0}')
            self.hub.publish('{"cpu_usage": 2.0}')

            first = await asyncio.wait_for(ws.recv(), timeout=2)
            second = await asyncio.wait_for(ws.recv(), timeout=2)
            self.assertEqual(json.loads(first)["cpu_usage"], 1.0)
            self.assertEqual(json.loads(second)["cpu_usage"], 2.0)

    async def test_inbound_messages_are_ignored(self):
        async with connect(self.url) as ws:
            await asyncio.wait_for(ws.recv(), timeout=2)
            await self._wait_for_subscribers(1)
            await ws.send("hello server")
            self.hub.publish('{"cpu_usage": 3.0}')
            payload = await asyncio.wait_for(ws.recv(), timeout=2)
            self.assertEqual(json.loads(payload)["cpu_usage"], 3.0)

    async def test_close_detaches_subscription(self):
        async with connect(self.url) as ws:
            await asyncio.wait_for(ws.recv(), timeout=2)
            await self._wait_for_subscribers(1)
        await self._wait_for_subscribers(0)

    async def test_each_session_gets_every_payload(self):
        async with connect(self.url) as a, connect(self.url) as b:
            await asyncio.wait_for(a.recv(), timeout=2)
            await asyncio.wait_for(b.recv(), timeout=2)
            await self._wait_for_subscribers(2)
            self.hub.publish("tick-1")
            self.assertEqual(await asyncio.wait_for(a.recv(), timeout=2), "tick-1")
            self.assertEqual(await asyncio.wait_for(b.recv(), timeout=2), "tick-1")


if __name__ == "__main__":
    unittest.main()

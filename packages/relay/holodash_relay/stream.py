"""WebSocket session server pushing every broadcast snapshot to the dashboard."""

from __future__ import annotations

import asyncio
import json
import logging

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from .hub import BroadcastHub


WELCOME_MESSAGE = "Welcome to the HoloDash telemetry feed"

_logger = logging.getLogger("holodash.stream")


def welcome_payload() -> str:
    return json.dumps({"type": "connected", "message": WELCOME_MESSAGE})


class StreamServer:
    def __init__(self, hub: BroadcastHub, host: str = "0.0.0.0", port: int = 9000) -> None:
        self.hub = hub
        self.host = host
        self.port = port
        self._server: Server | None = None

    @property
    def bound_port(self) -> int | None:
        if self._server is None:
            return None
        for sock in self._server.sockets:
            return sock.getsockname()[1]
        return None

    async def handle(self, websocket: ServerConnection) -> None:
        peer = websocket.remote_address
        _logger.info("stream session opened: %s", peer, extra={"event": "session_open", "peer": peer})

        try:
            await websocket.send(welcome_payload())
            with self.hub.subscribe() as sub:
                await self._pump(websocket, sub)
        except ConnectionClosed:
            pass
        finally:
            _logger.info("stream session closed: %s", peer, extra={"event": "session_close", "peer": peer})

    async def _pump(self, websocket: ServerConnection, sub) -> None:
        inbound = asyncio.ensure_future(websocket.recv())
        outbound = asyncio.ensure_future(sub.get())
        try:
            while True:
                done, _ = await asyncio.wait({inbound, outbound}, return_when=asyncio.FIRST_COMPLETED)
                if inbound in done:
                    # Raises ConnectionClosed once the peer goes away; other
                    # application messages are ignored.
                    inbound.result()
                    inbound = asyncio.ensure_future(websocket.recv())
                if outbound in done:
                    await websocket.send(outbound.result())
                    outbound = asyncio.ensure_future(sub.get())
        finally:
            inbound.cancel()
            outbound.cancel()

    async def start(self) -> Server:
        self._server = await serve(self.handle, self.host, self.port)
        return self._server

    async def serve_forever(self) -> None:
        server = self._server or await self.start()
        await server.serve_forever()

    async def close(self) -> None:
        server, self._server = self._server, None
        if server is not None:
            server.close()
            await server.wait_closed()

"""UDP discovery/heartbeat/fan-control endpoint for peripheral clients.

Inbound datagrams are short ASCII commands matched by prefix:

  DISCOVER      -> reply ``SERVER`` and register the sender
  HELLO / PING  -> register or refresh the sender, no reply
  FAN:<mode>    -> run the probe's set-mode command, reply FAN_OK/FAN_ERR

Every accepted datagram, fan commands included, counts as a heartbeat.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from holodash_core.registry import ClientRegistry
from holodash_telemetry.probe import SensorProbe, SubprocessSensorProbe, candidate_paths, find_probe_tool


ACK_TOKEN = b"SERVER"
FAN_PREFIX = "FAN:"
TOOL_NOT_FOUND = "temp_sensor not found"
INBOX_CAPACITY = 256

_logger = logging.getLogger("holodash.discovery")


class DatagramKind(str, Enum):
    DISCOVER = "discover"
    HEARTBEAT = "heartbeat"
    FAN = "fan"
    UNKNOWN = "unknown"


def classify(data: bytes) -> tuple[DatagramKind, str]:
    text = data.decode("utf-8", errors="replace")
    if text.startswith("DISCOVER"):
        return DatagramKind.DISCOVER, ""
    if text.startswith("HELLO") or text.startswith("PING"):
        return DatagramKind.HEARTBEAT, ""
    if text.startswith(FAN_PREFIX):
        return DatagramKind.FAN, text[len(FAN_PREFIX):].strip().lower()
    return DatagramKind.UNKNOWN, text


class DiscoveryProtocol(asyncio.DatagramProtocol):
    """Queues inbound datagrams for ``DiscoveryListener.serve`` and sends replies."""

    def __init__(self, capacity: int = INBOX_CAPACITY) -> None:
        self.transport: asyncio.DatagramTransport | None = None
        self.inbox: asyncio.Queue[tuple[bytes, Any]] = asyncio.Queue(maxsize=capacity)
        self.dropped = 0

    def connection_made(self, transport) -> None:
        self.transport = transport

    def datagram_received(self, data: bytes, addr) -> None:
        try:
            self.inbox.put_nowait((data, addr))
        except asyncio.QueueFull:
            self.dropped += 1

    def error_received(self, exc: Exception) -> None:
        # ICMP unreachable from a departed client; liveness eviction handles it.
        _logger.debug("datagram error: %s", exc)

    def connection_lost(self, exc: Exception | None) -> None:
        self.transport = None

    def send(self, payload: bytes, addr) -> None:
        if self.transport is None or self.transport.is_closing():
            raise OSError("datagram transport is closed")
        self.transport.sendto(payload, addr)


class DiscoveryListener:
    def __init__(
        self,
        registry: ClientRegistry,
        candidates: Callable[[], list[Path]] = candidate_paths,
        probe_factory: Callable[[Path], SensorProbe] = SubprocessSensorProbe,
    ) -> None:
        self._registry = registry
        self._candidates = candidates
        self._probe_factory = probe_factory
        self._fan_tasks: set[asyncio.Task] = set()

    async def handle(self, data: bytes, addr) -> bytes | None:
        kind, arg = classify(data)

        if kind is DatagramKind.DISCOVER:
            _logger.info("discovery request from %s", addr, extra={"event": "discover", "peer": addr})
            self._registry.upsert(addr)
            return ACK_TOKEN

        if kind is DatagramKind.HEARTBEAT:
            if self._registry.upsert(addr):
                _logger.info("new client: %s", addr, extra={"event": "client_new", "peer": addr})
            return None

        if kind is DatagramKind.FAN:
            try:
                return await self._set_fan_mode(arg, addr)
            finally:
                self._registry.upsert(addr)

        _logger.debug("ignoring datagram from %s: %r", addr, arg[:64])
        return None

    async def _set_fan_mode(self, mode: str, addr) -> bytes:
        _logger.info("fan mode %r requested by %s", mode, addr, extra={"event": "fan_request", "peer": addr})
        if not mode:
            return b"FAN_ERR:missing fan mode"

        path = find_probe_tool(self._candidates())
        if path is None:
            _logger.warning("fan control unavailable: %s", TOOL_NOT_FOUND, extra={"event": "fan_tool_missing"})
            return f"FAN_ERR:{TOOL_NOT_FOUND}".encode("utf-8")

        probe = self._probe_factory(path)
        result = await asyncio.to_thread(probe.set_fan_mode, mode)
        if result.success:
            _logger.info("fan mode set: %s", mode, extra={"event": "fan_ok"})
            return f"FAN_OK:{mode}".encode("utf-8")

        _logger.warning("fan mode %s failed: %s", mode, result.output, extra={"event": "fan_error"})
        return f"FAN_ERR:{result.output}".encode("utf-8", errors="replace")

    async def _respond(self, protocol: DiscoveryProtocol, data: bytes, addr) -> None:
        try:
            reply = await self.handle(data, addr)
        except Exception:
            _logger.exception("datagram handling failed for %s", addr)
            return
        if reply is None:
            return
        try:
            protocol.send(reply, addr)
        except OSError as exc:
            _logger.debug("reply to %s dropped: %s", addr, exc)

    async def serve(self, protocol: DiscoveryProtocol) -> None:
        # Fan commands run as separate tasks; heartbeats from other
        # clients are handled while one is in flight.
        try:
            while True:
                data, addr = await protocol.inbox.get()
                if classify(data)[0] is DatagramKind.FAN:
                    task = asyncio.create_task(self._respond(protocol, data, addr))
                    self._fan_tasks.add(task)
                    task.add_done_callback(self._fan_tasks.discard)
                    continue
                await self._respond(protocol, data, addr)
        finally:
            for task in list(self._fan_tasks):
                task.cancel()

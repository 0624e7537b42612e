"""Relay composition: sampling loop, UDP endpoint, and WebSocket server."""

from __future__ import annotations

import asyncio
import functools
import logging

from holodash_core.config import (
    AppConfig,
    CLIENT_TIMEOUT_S,
    PROBE_REFRESH_TICKS,
    TICK_INTERVAL_MS,
    WARMUP_MS,
)
from holodash_core.registry import ClientRegistry
from holodash_telemetry.probe import SubprocessSensorProbe, candidate_paths, locate_probe
from holodash_telemetry.provider import SensorAggregator

from .discovery import DiscoveryListener, DiscoveryProtocol
from .hub import BroadcastHub
from .scheduler import Scheduler
from .stream import StreamServer


_logger = logging.getLogger("holodash.server")


def build_aggregator(cfg: AppConfig) -> SensorAggregator:
    probe = locate_probe(candidate_paths(cfg.probe.path_override), use_sudo=cfg.probe.use_sudo)
    return SensorAggregator(
        probe,
        refresh_ticks=PROBE_REFRESH_TICKS,
        probe_timeout_s=cfg.probe.timeout_ms / 1000.0,
    )


class HoloDashServer:
    def __init__(self, cfg: AppConfig, aggregator: SensorAggregator | None = None) -> None:
        self.cfg = cfg
        self.aggregator = aggregator or build_aggregator(cfg)
        self.registry = ClientRegistry()
        self.hub = BroadcastHub()
        self.listener = DiscoveryListener(
            self.registry,
            candidates=functools.partial(candidate_paths, cfg.probe.path_override),
            probe_factory=functools.partial(SubprocessSensorProbe, use_sudo=cfg.probe.use_sudo),
        )
        self.stream = StreamServer(self.hub, host=cfg.network.host, port=cfg.network.stream_port)
        self.protocol: DiscoveryProtocol | None = None
        self.transport: asyncio.DatagramTransport | None = None
        self.scheduler: Scheduler | None = None
        self.ready = asyncio.Event()

    def _send_datagram(self, payload: bytes, addr) -> None:
        if self.protocol is None:
            raise OSError("datagram endpoint not started")
        self.protocol.send(payload, addr)

    async def serve_forever(self) -> None:
        loop = asyncio.get_running_loop()
        net = self.cfg.network
        transport, protocol = await loop.create_datagram_endpoint(
            DiscoveryProtocol,
            local_addr=(net.host, net.datagram_port),
        )
        self.protocol = protocol
        self.transport = transport
        self.scheduler = Scheduler(
            self.aggregator,
            self.hub,
            self.registry,
            self._send_datagram,
            tick_ms=TICK_INTERVAL_MS,
            client_timeout_s=CLIENT_TIMEOUT_S,
            warmup_ms=WARMUP_MS,
        )
        try:
            await self.stream.start()
            _logger.info(
                "websocket feed: ws://%s:%s",
                net.host,
                self.stream.bound_port,
                extra={"event": "stream_listening"},
            )
            _logger.info(
                "udp discovery: port %s",
                transport.get_extra_info("sockname")[1],
                extra={"event": "udp_listening"},
            )
            _logger.info("push interval: %dms", TICK_INTERVAL_MS, extra={"event": "push_interval"})
            self.ready.set()

            async with asyncio.TaskGroup() as tasks:
                tasks.create_task(self.listener.serve(protocol))
                tasks.create_task(self.scheduler.run())
                tasks.create_task(self.stream.serve_forever())
        finally:
            transport.close()
            await self.stream.close()
            self.aggregator.close()

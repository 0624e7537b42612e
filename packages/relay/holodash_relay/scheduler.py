"""Fixed-period sampling loop feeding both distribution transports."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable

from holodash_core.config import CLIENT_TIMEOUT_S, TICK_INTERVAL_MS, WARMUP_MS
from holodash_core.registry import ClientRegistry
from holodash_telemetry.models import MetricsSnapshot, serialize_snapshot
from holodash_telemetry.provider import SensorAggregator

from .hub import BroadcastHub


_logger = logging.getLogger("holodash.scheduler")

DatagramSender = Callable[[bytes, Any], None]


@dataclass
class TickReport:
    published: bool = False
    subscribers: int = 0
    unicast_sent: int = 0
    unicast_failed: int = 0
    evicted: int = 0


class Scheduler:
    def __init__(
        self,
        aggregator: SensorAggregator,
        hub: BroadcastHub,
        registry: ClientRegistry,
        send_datagram: DatagramSender,
        tick_ms: int = TICK_INTERVAL_MS,
        client_timeout_s: float = CLIENT_TIMEOUT_S,
        warmup_ms: int = WARMUP_MS,
        serializer: Callable[[MetricsSnapshot], str] = serialize_snapshot,
    ) -> None:
        self._aggregator = aggregator
        self._hub = hub
        self._registry = registry
        self._send_datagram = send_datagram
        self.tick_s = tick_ms / 1000.0
        self.client_timeout_s = client_timeout_s
        self.warmup_s = warmup_ms / 1000.0
        self._serializer = serializer
        self.ticks = 0

    async def tick(self) -> TickReport:
        report = TickReport()
        # psutil and the throttled probe call run off the event loop.
        snapshot = await asyncio.to_thread(self._aggregator.sample)

        try:
            payload = self._serializer(snapshot)
        except (TypeError, ValueError):
            _logger.exception("snapshot serialization failed; skipping tick", extra={"event": "serialize_error"})
            return report

        report.subscribers = self._hub.publish(payload)
        report.published = True

        expired = self._registry.evict_expired(self.client_timeout_s)
        for addr in expired:
            _logger.info("client timed out: %s", addr, extra={"event": "client_timeout", "peer": addr})
        report.evicted = len(expired)

        data = payload.encode("utf-8")
        for addr in self._registry.live_addresses():
            try:
                self._send_datagram(data, addr)
            except OSError:
                report.unicast_failed += 1
                continue
            report.unicast_sent += 1
        return report

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        await asyncio.sleep(self.warmup_s)
        next_at = loop.time()
        while True:
            try:
                await self.tick()
            except Exception:
                _logger.exception("tick failed", extra={"event": "tick_error"})
            self.ticks += 1

            next_at += self.tick_s
            now = loop.time()
            if next_at < now:
                # Missed boundaries are skipped rather than replayed in a burst.
                missed = int((now - next_at) // self.tick_s) + 1
                next_at += missed * self.tick_s
            await asyncio.sleep(next_at - now)

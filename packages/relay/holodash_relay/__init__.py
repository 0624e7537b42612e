"""Snapshot distribution over WebSocket sessions and UDP unicast."""

from .discovery import ACK_TOKEN, DatagramKind, DiscoveryListener, DiscoveryProtocol, classify
from .hub import BroadcastHub, Subscription
from .scheduler import Scheduler, TickReport
from .server import HoloDashServer, build_aggregator
from .stream import StreamServer, welcome_payload

__all__ = [
    "ACK_TOKEN",
    "BroadcastHub",
    "DatagramKind",
    "DiscoveryListener",
    "DiscoveryProtocol",
    "HoloDashServer",
    "Scheduler",
    "StreamServer",
    "Subscription",
    "TickReport",
    "build_aggregator",
    "classify",
    "welcome_payload",
]

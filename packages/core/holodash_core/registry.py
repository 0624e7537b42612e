"""Liveness map for datagram-registered peripheral clients."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Hashable


Address = Hashable


@dataclass
class ClientRecord:
    address: Address
    last_seen: float


class ClientRegistry:
    """Address -> last-seen map guarded by a single lock.

    Records never leave the registry; callers only get copies of addresses.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._records: dict[Address, ClientRecord] = {}
        self._lock = threading.Lock()

    def upsert(self, address: Address) -> bool:
        """Register or refresh ``address``; True when it was not known before."""
        now = self._clock()
        with self._lock:
            record = self._records.get(address)
            if record is None:
                self._records[address] = ClientRecord(address=address, last_seen=now)
                return True
            record.last_seen = now
            return False

    def evict_expired(self, timeout: float) -> list[Address]:
        now = self._clock()
        with self._lock:
            expired = [addr for addr, rec in self._records.items() if now - rec.last_seen >= timeout]
            for addr in expired:
                del self._records[addr]
        return expired

    def live_addresses(self) -> list[Address]:
        with self._lock:
            return list(self._records)

    def last_seen(self, address: Address) -> float | None:
        with self._lock:
            record = self._records.get(address)
            return record.last_seen if record is not None else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, address: object) -> bool:
        with self._lock:
            return address in self._records

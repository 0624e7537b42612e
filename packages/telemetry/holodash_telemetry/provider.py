"""Snapshot aggregator with tiered probe/platform/heuristic fallbacks."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Callable

from .host import BatteryReading, PlatformSource, TemperatureReading
from .models import BatteryStatus, HostIdentity, MetricsSnapshot, RawReading
from .probe import SensorProbe


PROBE_REFRESH_TICKS = 10
CPU_LABEL_KEYWORDS = ("core", "package", "cpu", "soc")
MAX_PLAUSIBLE_TEMP_C = 150.0
FULL_BATTERY_PCT = 95

_MB = 1024 * 1024
_logger = logging.getLogger("holodash.telemetry")


def cpu_temp_from_platform(readings: list[TemperatureReading]) -> float | None:
    best = 0.0
    for reading in readings:
        label = reading.label.lower()
        if not any(word in label for word in CPU_LABEL_KEYWORDS):
            continue
        if best < reading.current < MAX_PLAUSIBLE_TEMP_C:
            best = reading.current
    return best if best > 0.0 else None


def derive_gpu_temp(cpu_temp: float | None, cpu_usage: float) -> float | None:
    # SoC thermal coupling: GPU tracks the package temperature plus load.
    if cpu_temp is None:
        return None
    return cpu_temp + 3.0 + cpu_usage * 0.05


def estimate_power_score(cpu_usage: float, memory_usage: float) -> float:
    return 2.0 + cpu_usage * 0.15 + memory_usage * 0.05


def resolve_battery(
    reading: RawReading | None,
    platform_battery: BatteryReading | None,
) -> tuple[int | None, str | None]:
    percentage = reading.battery_percentage if reading is not None else None
    if percentage is None and platform_battery is not None:
        percentage = int(round(platform_battery.percent))

    if reading is not None and reading.battery_status is not None:
        return percentage, reading.battery_status
    if percentage is None:
        return None, None

    plugged = platform_battery.power_plugged if platform_battery is not None else None
    if plugged is True:
        status = BatteryStatus.CHARGING
    elif plugged is False:
        status = BatteryStatus.DISCHARGING
    elif percentage >= FULL_BATTERY_PCT:
        status = BatteryStatus.FULL
    else:
        status = BatteryStatus.UNKNOWN
    return percentage, status.value


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class SensorAggregator:
    """Produces one ``MetricsSnapshot`` per tick and never raises.

    Identity fields are read once at construction. The probe is queried on the
    first tick and then every ``refresh_ticks`` ticks; between refreshes the
    last good ``RawReading`` is reused. With ``probe_timeout_s`` set, the query
    runs on a worker thread and a slow probe leaves the stale reading in place
    until its result arrives on a later tick.
    """

    def __init__(
        self,
        probe: SensorProbe | None,
        platform: PlatformSource | None = None,
        refresh_ticks: int = PROBE_REFRESH_TICKS,
        probe_timeout_s: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._probe = probe
        self._platform = platform or PlatformSource()
        self._refresh_ticks = max(1, int(refresh_ticks))
        self._probe_timeout_s = probe_timeout_s
        self._clock = clock

        self._cached: RawReading | None = None
        self._counter = 0
        self._pending: Future | None = None
        self._executor: ThreadPoolExecutor | None = None
        if probe is not None and probe_timeout_s is not None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="holodash-probe")

        self.identity: HostIdentity = self._read_identity()
        if probe is None:
            _logger.warning("hardware probe unavailable; using platform fallbacks", extra={"event": "probe_missing"})
        else:
            _logger.info("hardware probe source: %s", getattr(probe, "path", probe), extra={"event": "probe_found"})
        _logger.info(
            "host identity: %s / %s",
            self.identity.hostname,
            self.identity.cpu_model,
            extra={"event": "host_identity"},
        )

    @property
    def probe_available(self) -> bool:
        return self._probe is not None

    @property
    def cached_reading(self) -> RawReading | None:
        return self._cached

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    def _read_identity(self) -> HostIdentity:
        try:
            return self._platform.identity()
        except Exception:
            _logger.exception("identity readout failed")
            return HostIdentity()

    def _adopt(self, reading: RawReading | None) -> None:
        # A failed query keeps the previous reading.
        if reading is not None:
            self._cached = reading

    def _collect_pending(self, wait_s: float) -> None:
        pending = self._pending
        if pending is None:
            return
        try:
            reading = pending.result(timeout=wait_s)
        except FutureTimeoutError:
            return
        except Exception:
            _logger.exception("probe query raised")
            reading = None
        self._pending = None
        self._adopt(reading)

    def _query_probe(self) -> None:
        probe = self._probe
        if probe is None:
            return
        if self._executor is None:
            try:
                self._adopt(probe.query())
            except Exception:
                _logger.exception("probe query raised")
            return
        if self._pending is None:
            self._pending = self._executor.submit(probe.query)
        self._collect_pending(self._probe_timeout_s or 0.0)

    def refresh_probe(self) -> RawReading | None:
        if self._probe is None:
            return None

        # A late result from an earlier tick is picked up without waiting.
        self._collect_pending(0.0)

        self._counter += 1
        if self._cached is None or self._counter >= self._refresh_ticks:
            self._counter = 0
            self._query_probe()
        return self._cached

    def sample(self) -> MetricsSnapshot:
        platform = self._platform
        try:
            cpu_usage = _mean(platform.cpu_percents())
        except Exception:
            cpu_usage = 0.0
        try:
            cpu_freq = int(_mean(platform.cpu_frequencies()))
        except Exception:
            cpu_freq = 0
        try:
            mem = platform.memory()
        except Exception:
            mem = None
        try:
            swap = platform.swap()
        except Exception:
            swap = None

        memory_total = mem.total // _MB if mem else 0
        memory_used = mem.used // _MB if mem else 0
        memory_usage = (memory_used / memory_total * 100.0) if memory_total > 0 else 0.0
        swap_usage = (swap.used / swap.total * 100.0) if swap and swap.total > 0 else 0.0

        reading = self.refresh_probe()

        cpu_temp = reading.cpu_temp if reading is not None else None
        if cpu_temp is None:
            try:
                cpu_temp = cpu_temp_from_platform(platform.temperatures())
            except Exception:
                cpu_temp = None

        if reading is not None:
            power_score = reading.estimated_power_score
            fan_speeds = tuple(reading.fan_speed)
        else:
            power_score = estimate_power_score(cpu_usage, memory_usage)
            fan_speeds = ()

        try:
            platform_battery = platform.battery()
        except Exception:
            platform_battery = None
        battery_percentage, battery_status = resolve_battery(reading, platform_battery)

        ident = self.identity
        uptime = None
        if ident.boot_time is not None:
            uptime = max(0, int(self._clock() - ident.boot_time))

        return MetricsSnapshot(
            cpu_usage=cpu_usage,
            cpu_frequency_mhz=cpu_freq,
            memory_usage=memory_usage,
            memory_total=memory_total,
            memory_used=memory_used,
            swap_usage=swap_usage,
            power_score=power_score,
            cpu_temp=cpu_temp,
            gpu_temp=derive_gpu_temp(cpu_temp, cpu_usage),
            fan_speeds=fan_speeds,
            hostname=ident.hostname,
            os_name=ident.os_name,
            kernel_version=ident.kernel_version,
            cpu_model=ident.cpu_model,
            cpu_cores=ident.cpu_cores,
            uptime_secs=uptime,
            battery_percentage=battery_percentage,
            battery_status=battery_status,
            resolution=ident.resolution,
        )

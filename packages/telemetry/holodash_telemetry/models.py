"""Typed telemetry models and the snapshot wire encoding."""

from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class BatteryStatus(str, Enum):
    CHARGING = "Charging"
    DISCHARGING = "Discharging"
    FULL = "Full"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class RawReading:
    """One probe query result; reused for several ticks until refreshed."""

    cpu_temp: float
    fan_speed: tuple[float, ...]
    estimated_power_score: float
    battery_percentage: int | None = None
    battery_status: str | None = None


@dataclass(frozen=True)
class HostIdentity:
    hostname: str | None = None
    os_name: str | None = None
    kernel_version: str | None = None
    cpu_model: str | None = None
    cpu_cores: int | None = None
    resolution: str | None = None
    boot_time: float | None = None


@dataclass(frozen=True)
class FanCommandResult:
    success: bool
    output: str


@dataclass(frozen=True)
class MetricsSnapshot:
    cpu_usage: float
    cpu_frequency_mhz: int
    memory_usage: float
    memory_total: int
    memory_used: int
    swap_usage: float
    power_score: float
    cpu_temp: float | None = None
    gpu_temp: float | None = None
    fan_speeds: tuple[float, ...] = field(default_factory=tuple)
    hostname: str | None = None
    os_name: str | None = None
    kernel_version: str | None = None
    cpu_model: str | None = None
    cpu_cores: int | None = None
    uptime_secs: int | None = None
    battery_percentage: int | None = None
    battery_status: str | None = None
    resolution: str | None = None


WIRE_FIELDS = (
    "cpu_usage",
    "cpu_frequency_mhz",
    "memory_usage",
    "memory_total",
    "memory_used",
    "swap_usage",
    "cpu_temp",
    "gpu_temp",
    "fan_speeds",
    "power_score",
    "hostname",
    "os_name",
    "kernel_version",
    "cpu_model",
    "cpu_cores",
    "uptime_secs",
    "battery_percentage",
    "battery_status",
    "resolution",
)


def snapshot_payload(snapshot: MetricsSnapshot) -> dict[str, Any]:
    raw = asdict(snapshot)
    payload = {name: raw[name] for name in WIRE_FIELDS}
    payload["fan_speeds"] = list(snapshot.fan_speeds)
    return payload


def serialize_snapshot(snapshot: MetricsSnapshot) -> str:
    # allow_nan=False keeps the payload parseable by browser JSON.parse.
    return json.dumps(snapshot_payload(snapshot), ensure_ascii=True, allow_nan=False)


def _finite(value: Any, name: str) -> float:
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"{name} is not finite: {value!r}")
    return number


def parse_raw_reading(text: str) -> RawReading:
    """Parse the probe's ``-j`` output.

    Raises ``ValueError`` when the document is not the expected object shape,
    a field has the wrong type, or a number is NaN/Infinity.
    """
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("probe output is not a JSON object")

    try:
        cpu_temp = _finite(data["cpu_temp"], "cpu_temp")
        fans = data["fan_speed"]
        if not isinstance(fans, list):
            raise ValueError("fan_speed is not a list")
        fan_speed = tuple(_finite(v, "fan_speed") for v in fans)
        power = _finite(data["estimated_power_score"], "estimated_power_score")

        battery_pct = data.get("battery_percentage")
        if battery_pct is not None:
            battery_pct = int(_finite(battery_pct, "battery_percentage"))
        battery_status = data.get("battery_status")
    except KeyError as exc:
        raise ValueError(f"probe output missing field: {exc}") from exc
    except (OverflowError, TypeError) as exc:
        raise ValueError(f"probe output has a mistyped field: {exc}") from exc

    return RawReading(
        cpu_temp=cpu_temp,
        fan_speed=fan_speed,
        estimated_power_score=power,
        battery_percentage=battery_pct,
        battery_status=(str(battery_status) if battery_status is not None else None),
    )

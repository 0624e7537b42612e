"""Host telemetry sampling for HoloDash."""

from .host import BatteryReading, MemoryReading, PlatformSource, TemperatureReading
from .models import (
    BatteryStatus,
    FanCommandResult,
    HostIdentity,
    MetricsSnapshot,
    RawReading,
    parse_raw_reading,
    serialize_snapshot,
    snapshot_payload,
)
from .probe import ProbeError, SensorProbe, SubprocessSensorProbe, candidate_paths, find_probe_tool, locate_probe
from .provider import SensorAggregator

__all__ = [
    "BatteryReading",
    "BatteryStatus",
    "FanCommandResult",
    "HostIdentity",
    "MemoryReading",
    "MetricsSnapshot",
    "PlatformSource",
    "ProbeError",
    "RawReading",
    "SensorAggregator",
    "SensorProbe",
    "SubprocessSensorProbe",
    "TemperatureReading",
    "candidate_paths",
    "find_probe_tool",
    "locate_probe",
    "parse_raw_reading",
    "serialize_snapshot",
    "snapshot_payload",
]

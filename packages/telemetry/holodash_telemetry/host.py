"""psutil-backed host readouts used by the aggregator."""

from __future__ import annotations

import platform
import socket
import subprocess
from dataclasses import dataclass
from pathlib import Path

import psutil

from .models import HostIdentity


@dataclass(frozen=True)
class MemoryReading:
    total: int
    used: int


@dataclass(frozen=True)
class TemperatureReading:
    label: str
    current: float


@dataclass(frozen=True)
class BatteryReading:
    percent: float
    power_plugged: bool | None


class PlatformSource:
    """Thin wrapper over psutil with stable, exception-free defaults."""

    def __init__(self) -> None:
        # Prime the non-blocking CPU measurement; the first call always reports 0.
        psutil.cpu_percent(interval=None, percpu=True)

    def cpu_percents(self) -> list[float]:
        return [float(v) for v in psutil.cpu_percent(interval=None, percpu=True)]

    def cpu_frequencies(self) -> list[float]:
        try:
            freqs = psutil.cpu_freq(percpu=True)
        except Exception:
            return []
        return [float(f.current) for f in (freqs or []) if f is not None]

    def memory(self) -> MemoryReading:
        vm = psutil.virtual_memory()
        return MemoryReading(total=int(vm.total), used=int(vm.used))

    def swap(self) -> MemoryReading:
        try:
            sm = psutil.swap_memory()
        except Exception:
            return MemoryReading(total=0, used=0)
        return MemoryReading(total=int(sm.total), used=int(sm.used))

    def temperatures(self) -> list[TemperatureReading]:
        read = getattr(psutil, "sensors_temperatures", None)
        if read is None:
            return []
        try:
            groups = read()
        except Exception:
            return []

        out: list[TemperatureReading] = []
        for chip, entries in (groups or {}).items():
            for entry in entries:
                if entry.current is None:
                    continue
                label = f"{chip} {entry.label}".strip()
                out.append(TemperatureReading(label=label, current=float(entry.current)))
        return out

    def battery(self) -> BatteryReading | None:
        read = getattr(psutil, "sensors_battery", None)
        if read is None:
            return None
        try:
            batt = read()
        except Exception:
            return None
        if batt is None:
            return None
        return BatteryReading(percent=float(batt.percent), power_plugged=batt.power_plugged)

    def identity(self) -> HostIdentity:
        try:
            cores = psutil.cpu_count(logical=True)
        except Exception:
            cores = None
        try:
            boot = float(psutil.boot_time())
        except Exception:
            boot = None
        return HostIdentity(
            hostname=_hostname(),
            os_name=_os_name(),
            kernel_version=(platform.release() or None),
            cpu_model=_cpu_model(),
            cpu_cores=cores,
            resolution=_resolution(),
            boot_time=boot,
        )


def _hostname() -> str | None:
    try:
        return socket.gethostname() or None
    except OSError:
        return None


def _os_name() -> str | None:
    system = platform.system()
    if system == "Darwin":
        version = platform.mac_ver()[0]
        return f"macOS {version}".strip()
    if system == "Windows":
        return f"Windows {platform.release()}".strip()
    if system == "Linux":
        try:
            release = platform.freedesktop_os_release()
        except OSError:
            return "Linux"
        return release.get("PRETTY_NAME") or release.get("NAME") or "Linux"
    return system or None


def _cpu_model() -> str | None:
    system = platform.system()
    if system == "Linux":
        try:
            text = Path("/proc/cpuinfo").read_text(encoding="utf-8", errors="replace")
        except OSError:
            text = ""
        for line in text.splitlines():
            key, _, value = line.partition(":")
            if key.strip() in ("model name", "Model", "Hardware") and value.strip():
                return value.strip()
    elif system == "Darwin":
        try:
            out = subprocess.run(
                ["sysctl", "-n", "machdep.cpu.brand_string"],
                capture_output=True,
                timeout=2,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired):
            out = None
        if out is not None and out.returncode == 0:
            model = out.stdout.decode("utf-8", errors="replace").strip()
            if model:
                return model
    return platform.processor() or None


def _resolution() -> str | None:
    if platform.system() != "Linux":
        return None
    drm = Path("/sys/class/drm")
    if not drm.is_dir():
        return None
    for connector in sorted(drm.iterdir()):
        try:
            if (connector / "status").read_text(encoding="utf-8").strip() != "connected":
                continue
            modes = (connector / "modes").read_text(encoding="utf-8").split()
        except OSError:
            continue
        if modes:
            return modes[0]
    return None

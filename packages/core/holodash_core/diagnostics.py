"""Doctor payload: host, config, and probe discovery state."""

from __future__ import annotations

import platform
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

import psutil

from .config import AppConfig, config_path


def _sensor_families() -> dict[str, Any]:
    families: dict[str, Any] = {}
    read_temps = getattr(psutil, "sensors_temperatures", None)
    if read_temps is not None:
        try:
            temps = read_temps() or {}
        except Exception:
            temps = {}
        families["temperatures"] = {
            chip: [entry.label or "" for entry in entries] for chip, entries in temps.items()
        }
    else:
        families["temperatures"] = None

    read_battery = getattr(psutil, "sensors_battery", None)
    try:
        battery = read_battery() if read_battery is not None else None
    except Exception:
        battery = None
    families["battery"] = (
        {"percent": battery.percent, "power_plugged": battery.power_plugged} if battery is not None else None
    )
    return families


def build_doctor_payload(cfg: AppConfig, probe_candidates: Iterable[Path]) -> dict[str, Any]:
    return {
        "ts_utc": datetime.now(timezone.utc).isoformat(),
        "platform": platform.platform(),
        "python": platform.python_version(),
        "config_path": str(config_path()),
        "config": asdict(cfg),
        "probe_candidates": [
            {"path": str(path), "exists": path.is_file()} for path in probe_candidates
        ],
        "sensors": _sensor_families(),
        "cpu_count": psutil.cpu_count(logical=True),
    }

"""Relay settings schema, fixed timing constants, and load/save helpers."""

from __future__ import annotations

import json
import os
import platform
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any


CONFIG_VERSION = 2

STREAM_PORT = 9000
DATAGRAM_PORT = 9001
TICK_INTERVAL_MS = 100
CLIENT_TIMEOUT_S = 10.0
PROBE_REFRESH_TICKS = 10
WARMUP_MS = 500


@dataclass
class NetworkConfig:
    host: str = "0.0.0.0"
    stream_port: int = STREAM_PORT
    datagram_port: int = DATAGRAM_PORT


@dataclass
class ProbeConfig:
    path_override: str | None = None
    use_sudo: bool = True
    timeout_ms: int = 80


@dataclass
class LoggingConfig:
    keep_log_files: int = 7
    console: bool = True


@dataclass
class AppConfig:
    config_version: int = CONFIG_VERSION
    network: NetworkConfig = field(default_factory=NetworkConfig)
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


DEFAULT_CONFIG = AppConfig()


def config_root() -> Path:
    system = platform.system()
    if system == "Windows":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        return base / "HoloDash"
    if system == "Darwin":
        return Path.home() / "Library" / "Application Support" / "HoloDash"
    return Path.home() / ".config" / "holodash"


def config_path() -> Path:
    return config_root() / "config.json"


def _merge(dataclass_type, raw: dict[str, Any]):
    defaults = dataclass_type()  # type: ignore[misc]
    for k, v in raw.items():
        if hasattr(defaults, k):
            setattr(defaults, k, v)
    return defaults


def _clamp_port(value: Any, default: int) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError):
        return default
    return port if 1 <= port <= 65535 else default


def _normalize_network(cfg: AppConfig) -> None:
    cfg.network.host = str(cfg.network.host or "0.0.0.0")
    cfg.network.stream_port = _clamp_port(cfg.network.stream_port, STREAM_PORT)
    cfg.network.datagram_port = _clamp_port(cfg.network.datagram_port, DATAGRAM_PORT)


def _normalize_probe(cfg: AppConfig) -> None:
    try:
        timeout = int(cfg.probe.timeout_ms)
    except (TypeError, ValueError):
        timeout = ProbeConfig.timeout_ms
    cfg.probe.timeout_ms = max(10, min(1000, timeout))
    cfg.probe.use_sudo = bool(cfg.probe.use_sudo)
    if cfg.probe.path_override is not None:
        cfg.probe.path_override = str(cfg.probe.path_override).strip() or None


def _normalize_logging(cfg: AppConfig) -> None:
    cfg.logging.keep_log_files = max(2, int(cfg.logging.keep_log_files))
    cfg.logging.console = bool(cfg.logging.console)


def _migrate(raw: dict[str, Any]) -> dict[str, Any]:
    version = int(raw.get("config_version", 1))
    data = dict(raw)

    if version < 2:
        # v1 kept ports at the top level.
        network = dict(data.get("network", {}) or {})
        for key in ("host", "stream_port", "datagram_port"):
            if key in data:
                network.setdefault(key, data.pop(key))
        data["network"] = network
        data.setdefault("probe", {})
        data.setdefault("logging", {})
        data["config_version"] = 2

    return data


def load_config(path: Path | None = None) -> AppConfig:
    path = path or config_path()
    if not path.exists():
        return AppConfig()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except Exception:
        return AppConfig()
    if not isinstance(raw, dict):
        return AppConfig()

    data = _migrate(raw)
    cfg = AppConfig(
        config_version=int(data.get("config_version", CONFIG_VERSION)),
        network=_merge(NetworkConfig, data.get("network", {})),
        probe=_merge(ProbeConfig, data.get("probe", {})),
        logging=_merge(LoggingConfig, data.get("logging", {})),
    )

    _normalize_network(cfg)
    _normalize_probe(cfg)
    _normalize_logging(cfg)
    return cfg


def save_config(cfg: AppConfig, path: Path | None = None) -> Path:
    cfg.config_version = CONFIG_VERSION
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(cfg), indent=2, sort_keys=True), encoding="utf-8")
    return path

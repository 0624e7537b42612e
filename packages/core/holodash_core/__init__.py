"""Core relay services: settings, logging, client liveness, and diagnostics."""

from .config import AppConfig, load_config, save_config
from .diagnostics import build_doctor_payload
from .registry import ClientRecord, ClientRegistry

__all__ = [
    "AppConfig",
    "ClientRecord",
    "ClientRegistry",
    "build_doctor_payload",
    "load_config",
    "save_config",
]

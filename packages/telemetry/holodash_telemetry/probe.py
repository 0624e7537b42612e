"""Hardware probe capability and the ``temp_sensor`` subprocess adapter."""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Iterable

from .models import FanCommandResult, RawReading, parse_raw_reading


PROBE_TOOL_NAME = "temp_sensor"
PROBE_PATH_ENV = "HOLODASH_PROBE_PATH"

_logger = logging.getLogger("holodash.probe")


class ProbeError(RuntimeError):
    """The probe executable could not be run or returned unusable output."""


class SensorProbe:
    """Capability interface for the external hardware probe."""

    def query(self) -> RawReading | None:
        return None

    def set_fan_mode(self, mode: str) -> FanCommandResult:
        return FanCommandResult(success=False, output="fan control unsupported")


class SubprocessSensorProbe(SensorProbe):
    def __init__(
        self,
        path: Path,
        use_sudo: bool = True,
        query_timeout_s: float = 5.0,
        command_timeout_s: float = 30.0,
    ) -> None:
        self.path = Path(path)
        self.use_sudo = use_sudo
        self.query_timeout_s = query_timeout_s
        self.command_timeout_s = command_timeout_s

    def read(self) -> RawReading:
        try:
            out = subprocess.run(
                [str(self.path), "-j"],
                capture_output=True,
                timeout=self.query_timeout_s,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise ProbeError(f"failed to run {self.path}: {exc}") from exc

        if out.returncode != 0:
            stderr = out.stderr.decode("utf-8", errors="replace").strip()
            raise ProbeError(f"{self.path} exited with {out.returncode}: {stderr}")

        try:
            return parse_raw_reading(out.stdout.decode("utf-8", errors="replace"))
        except ValueError as exc:
            raise ProbeError(f"malformed probe output: {exc}") from exc

    def query(self) -> RawReading | None:
        try:
            return self.read()
        except ProbeError as exc:
            _logger.debug("probe query failed: %s", exc)
            return None

    def set_fan_mode(self, mode: str) -> FanCommandResult:
        argv = [str(self.path), "-s", mode]
        if self.use_sudo:
            # -n: never block on a password prompt.
            argv = ["sudo", "-n", *argv]
        try:
            out = subprocess.run(argv, capture_output=True, timeout=self.command_timeout_s, check=False)
        except (OSError, subprocess.TimeoutExpired) as exc:
            return FanCommandResult(success=False, output=str(exc))

        stdout = out.stdout.decode("utf-8", errors="replace").strip()
        stderr = out.stderr.decode("utf-8", errors="replace").strip()
        if out.returncode == 0:
            return FanCommandResult(success=True, output=stdout)
        return FanCommandResult(success=False, output=stderr or f"exit status {out.returncode}")


def candidate_paths(override: str | None = None) -> list[Path]:
    """Ordered probe locations; the first existing one wins."""
    paths: list[Path] = []
    explicit = override or os.environ.get(PROBE_PATH_ENV, "").strip()
    if explicit:
        paths.append(Path(explicit).expanduser())

    paths.append(Path.cwd() / "temp-sensor" / PROBE_TOOL_NAME)
    if sys.argv and sys.argv[0]:
        script_dir = Path(sys.argv[0]).resolve().parent
        paths.append(script_dir.parent / "temp-sensor" / PROBE_TOOL_NAME)
    paths.append(Path(__file__).resolve().parent / "temp-sensor" / PROBE_TOOL_NAME)
    paths.append(Path(sys.executable).resolve().parent / PROBE_TOOL_NAME)
    return paths


def find_probe_tool(candidates: Iterable[Path]) -> Path | None:
    for path in candidates:
        if path.is_file():
            return path
    return None


def locate_probe(candidates: Iterable[Path], use_sudo: bool = True) -> SubprocessSensorProbe | None:
    """Return a probe for the first candidate that answers ``-j`` with valid JSON."""
    for path in candidates:
        if not path.is_file():
            continue
        probe = SubprocessSensorProbe(path, use_sudo=use_sudo)
        try:
            probe.read()
        except ProbeError as exc:
            _logger.info("probe candidate rejected: %s (%s)", path, exc)
            continue
        return probe
    return None

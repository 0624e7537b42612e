"""CLI entrypoints for the HoloDash relay, one-shot sampling, fan control, and diagnostics."""

from __future__ import annotations

import argparse
import asyncio
import json
import time

from holodash_core import build_doctor_payload, load_config
from holodash_core.logging_setup import configure_logging, get_logger, install_crash_hooks
from holodash_telemetry import SensorAggregator, candidate_paths, find_probe_tool, locate_probe, snapshot_payload
from holodash_telemetry.probe import SubprocessSensorProbe


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, sort_keys=True, default=str))


def cmd_run(args: argparse.Namespace) -> int:
    from holodash_relay import HoloDashServer

    cfg = load_config()
    if args.host:
        cfg.network.host = args.host
    if args.stream_port:
        cfg.network.stream_port = args.stream_port
    if args.datagram_port:
        cfg.network.datagram_port = args.datagram_port

    configure_logging(keep_files=cfg.logging.keep_log_files, console=(cfg.logging.console and not args.no_console))
    install_crash_hooks()

    server = HoloDashServer(cfg)
    try:
        asyncio.run(server.serve_forever())
    except KeyboardInterrupt:
        get_logger().info("shutting down", extra={"event": "shutdown"})
    return 0


def cmd_sample(args: argparse.Namespace) -> int:
    cfg = load_config()
    probe = locate_probe(candidate_paths(cfg.probe.path_override), use_sudo=cfg.probe.use_sudo)
    aggregator = SensorAggregator(probe)
    try:
        for idx in range(max(1, args.count)):
            if idx:
                time.sleep(max(0, args.interval_ms) / 1000.0)
            _print_json(snapshot_payload(aggregator.sample()))
    finally:
        aggregator.close()
    return 0


def cmd_fan(args: argparse.Namespace) -> int:
    cfg = load_config()
    mode = args.mode.strip().lower()
    path = find_probe_tool(candidate_paths(cfg.probe.path_override))
    if path is None:
        _print_json({"success": False, "mode": mode, "error": "temp_sensor not found"})
        return 2

    result = SubprocessSensorProbe(path, use_sudo=cfg.probe.use_sudo).set_fan_mode(mode)
    _print_json({"success": result.success, "mode": mode, "tool": str(path), "output": result.output})
    return 0 if result.success else 1


def cmd_doctor(_args: argparse.Namespace) -> int:
    cfg = load_config()
    _print_json(build_doctor_payload(cfg, candidate_paths(cfg.probe.path_override)))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="holodash", description="HoloDash telemetry relay and tools")
    sub = parser.add_subparsers(dest="command", required=True)

    run_cmd = sub.add_parser("run", help="Run the telemetry relay")
    run_cmd.add_argument("--host", default=None, help="Bind address for both listeners")
    run_cmd.add_argument("--stream-port", type=int, default=None, help="WebSocket port")
    run_cmd.add_argument("--datagram-port", type=int, default=None, help="UDP discovery port")
    run_cmd.add_argument("--no-console", action="store_true", help="Log to file only")
    run_cmd.set_defaults(func=cmd_run)

    sample_cmd = sub.add_parser("sample", help="Print telemetry snapshots as JSON")
    sample_cmd.add_argument("--count", type=int, default=1)
    sample_cmd.add_argument("--interval-ms", type=int, default=1000)
    sample_cmd.set_defaults(func=cmd_sample)

    fan_cmd = sub.add_parser("fan", help="Set the fan mode through the hardware probe")
    fan_cmd.add_argument("mode", help="Fan mode understood by temp_sensor, e.g. auto, silent, turbo")
    fan_cmd.set_defaults(func=cmd_fan)

    doctor_cmd = sub.add_parser("doctor", help="Print diagnostics and probe discovery state")
    doctor_cmd.set_defaults(func=cmd_doctor)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())

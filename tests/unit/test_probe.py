import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "telemetry"))

from holodash_telemetry.probe import (
    PROBE_PATH_ENV,
    ProbeError,
    SubprocessSensorProbe,
    candidate_paths,
    find_probe_tool,
    locate_probe,
)


_QUERY_OK = """
import sys
if sys.argv[1] == "-j":
    print('{"cpu_temp": 51.0, "fan_speed": [1800], "estimated_power_score": 5.5}')
elif sys.argv[1] == "-s" and sys.argv[2] == "silent":
    print("fan mode: silent")
else:
    sys.stderr.write("unsupported mode " + sys.argv[2])
    sys.exit(3)
"""

_QUERY_GARBAGE = """
print("temperature: warm")
"""

_QUERY_MISTYPED = """
print('{"cpu_temp": 50, "fan_speed": [null], "estimated_power_score": 3}')
"""

_QUERY_NAN = """
print('{"cpu_temp": NaN, "fan_speed": [], "estimated_power_score": 3}')
"""


def _write_tool(directory: Path, body: str) -> Path:
    path = directory / "temp_sensor"
    path.write_text(f"#!{sys.executable}\n{body}", encoding="utf-8")
    path.chmod(0o755)
    return path


class CandidatePathTests(unittest.TestCase):
    def test_override_comes_first(self):
        paths = candidate_paths("/opt/probe/temp_sensor")
        self.assertEqual(paths[0], Path("/opt/probe/temp_sensor"))
        self.assertEqual(paths[1], Path.cwd() / "temp-sensor" / "temp_sensor")
        self.assertEqual(paths[-1].name, "temp_sensor")

    def test_env_override(self):
        with patch.dict(os.environ, {PROBE_PATH_ENV: "/srv/tool"}):
            self.assertEqual(candidate_paths()[0], Path("/srv/tool"))

    def test_first_existing_candidate_wins(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            second = root / "b"
            third = root / "c"
            second.write_text("x", encoding="utf-8")
            third.write_text("x", encoding="utf-8")
            self.assertEqual(find_probe_tool([root / "a", second, third]), second)
            self.assertIsNone(find_probe_tool([root / "missing"]))


@unittest.skipIf(sys.platform.startswith("win"), "shebang scripts need a POSIX host")
class SubprocessProbeTests(unittest.TestCase):
    def test_query_and_fan_mode(self):
        with tempfile.TemporaryDirectory() as tmp:
            tool = _write_tool(Path(tmp), _QUERY_OK)
            probe = SubprocessSensorProbe(tool, use_sudo=False)

            reading = probe.query()
            self.assertEqual(reading.cpu_temp, 51.0)
            self.assertEqual(reading.fan_speed, (1800.0,))

            ok = probe.set_fan_mode("silent")
            self.assertTrue(ok.success)
            self.assertIn("silent", ok.output)

            err = probe.set_fan_mode("warp")
            self.assertFalse(err.success)
            self.assertIn("unsupported mode warp", err.output)

    def test_malformed_output_is_unavailable(self):
        with tempfile.TemporaryDirectory() as tmp:
            tool = _write_tool(Path(tmp), _QUERY_GARBAGE)
            probe = SubprocessSensorProbe(tool, use_sudo=False)
            self.assertIsNone(probe.query())
            with self.assertRaises(ProbeError):
                probe.read()

    def test_locate_skips_invalid_candidates(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            (root / "bad").mkdir()
            (root / "good").mkdir()
            bad = _write_tool(root / "bad", _QUERY_GARBAGE)
            good = _write_tool(root / "good", _QUERY_OK)

            probe = locate_probe([root / "missing", bad, good], use_sudo=False)
            self.assertIsNotNone(probe)
            self.assertEqual(probe.path, good)
            self.assertIsNone(locate_probe([bad]))

    def test_locate_rejects_mistyped_and_non_finite_output(self):
        for body in (_QUERY_MISTYPED, _QUERY_NAN):
            with self.subTest(body=body.strip()), tempfile.TemporaryDirectory() as tmp:
                tool = _write_tool(Path(tmp), body)
                probe = SubprocessSensorProbe(tool, use_sudo=False)
                self.assertIsNone(probe.query())
                with self.assertRaises(ProbeError):
                    probe.read()
                self.assertIsNone(locate_probe([tool], use_sudo=False))

    def test_missing_executable(self):
        probe = SubprocessSensorProbe(Path("/nonexistent/temp_sensor"), use_sudo=False)
        self.assertIsNone(probe.query())
        self.assertFalse(probe.set_fan_mode("auto").success)


if __name__ == "__main__":
    unittest.main()

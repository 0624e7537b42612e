import json
import sys
import tempfile
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "core"))
sys.path.insert(0, str(ROOT / "packages" / "telemetry"))

from holodash_core.config import load_config
from holodash_core.diagnostics import build_doctor_payload


class DiagnosticsTests(unittest.TestCase):
    def test_doctor_payload_lists_probe_candidates(self):
        cfg = load_config(Path("/tmp/nonexistent-holodash-config.json"))
        with tempfile.TemporaryDirectory() as tmp:
            present = Path(tmp) / "temp_sensor"
            present.write_text("", encoding="utf-8")
            missing = Path(tmp) / "nope" / "temp_sensor"

            payload = build_doctor_payload(cfg, [missing, present])

        self.assertEqual(
            payload["probe_candidates"],
            [{"path": str(missing), "exists": False}, {"path": str(present), "exists": True}],
        )
        self.assertEqual(payload["config"]["network"]["stream_port"], 9000)
        self.assertIn("sensors", payload)
        json.dumps(payload)


if __name__ == "__main__":
    unittest.main()

import json
import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "telemetry"))

from holodash_telemetry.models import BatteryStatus, MetricsSnapshot, parse_raw_reading, serialize_snapshot


class RawReadingParseTests(unittest.TestCase):
    def test_full_document(self):
        text = json.dumps(
            {
                "cpu_temp": 48.5,
                "fan_speed": [1200, 1315.5],
                "estimated_power_score": 6.25,
                "battery_percentage": 81,
                "battery_status": "AC Attached",
            }
        )
        reading = parse_raw_reading(text)
        self.assertEqual(reading.cpu_temp, 48.5)
        self.assertEqual(reading.fan_speed, (1200.0, 1315.5))
        self.assertEqual(reading.estimated_power_score, 6.25)
        self.assertEqual(reading.battery_percentage, 81)
        self.assertEqual(reading.battery_status, "AC Attached")

    def test_battery_fields_optional(self):
        reading = parse_raw_reading('{"cpu_temp": 40, "fan_speed": [], "estimated_power_score": 3}')
        self.assertIsNone(reading.battery_percentage)
        self.assertIsNone(reading.battery_status)
        self.assertEqual(reading.fan_speed, ())

    def test_malformed_documents_rejected(self):
        bad = [
            "not json",
            "[1, 2]",
            '{"fan_speed": [], "estimated_power_score": 1}',
            '{"cpu_temp": 40, "fan_speed": 5, "estimated_power_score": 1}',
            '{"cpu_temp": null, "fan_speed": [], "estimated_power_score": 1}',
            '{"cpu_temp": 50, "fan_speed": [null], "estimated_power_score": 3}',
            '{"cpu_temp": 50, "fan_speed": [], "estimated_power_score": 3, "battery_percentage": []}',
            '{"cpu_temp": 50, "fan_speed": [{}], "estimated_power_score": 3}',
            '{"cpu_temp": NaN, "fan_speed": [], "estimated_power_score": 3}',
            '{"cpu_temp": 50, "fan_speed": [Infinity], "estimated_power_score": 3}',
            '{"cpu_temp": 50, "fan_speed": [], "estimated_power_score": -Infinity}',
        ]
        for text in bad:
            with self.subTest(text=text):
                with self.assertRaises(ValueError):
                    parse_raw_reading(text)


class SnapshotWireTests(unittest.TestCase):
    def test_wire_keys_and_nulls(self):
        snap = MetricsSnapshot(
            cpu_usage=12.5,
            cpu_frequency_mhz=2400,
            memory_usage=50.0,
            memory_total=16000,
            memory_used=8000,
            swap_usage=0.0,
            power_score=4.5,
            fan_speeds=(1000.0, 1100.0),
            hostname="box",
            battery_status=BatteryStatus.FULL.value,
        )
        payload = json.loads(serialize_snapshot(snap))
        self.assertEqual(
            set(payload),
            {
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
            },
        )
        self.assertIsNone(payload["cpu_temp"])
        self.assertEqual(payload["fan_speeds"], [1000.0, 1100.0])
        self.assertEqual(payload["battery_status"], "Full")

    def test_nan_is_not_serializable(self):
        snap = MetricsSnapshot(
            cpu_usage=float("nan"),
            cpu_frequency_mhz=0,
            memory_usage=0.0,
            memory_total=0,
            memory_used=0,
            swap_usage=0.0,
            power_score=2.0,
        )
        with self.assertRaises(ValueError):
            serialize_snapshot(snap)


if __name__ == "__main__":
    unittest.main()

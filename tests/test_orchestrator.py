"""
Tests for PushOrchestrator.

Tests cover:
- Stage order and fail-fast behaviour
- cleanup runs exactly once, and only when init succeeded
- Mirroring to a secondary output
- Error wrapping and PushResult contents
- The public push_payload API
"""

import io
import tempfile
import unittest
from pathlib import Path
from typing import Any, BinaryIO, List, Mapping, Optional
from unittest.mock import patch

from pushx._drivers import DeliveryRequest, DriverRegistry, PushOrchestrator
from pushx.exceptions import (
    BackendConnectionError,
    CleanupError,
    ConfigurationError,
    DeliveryError,
    DriverNotFoundError,
)
from pushx.push import push_payload


class RecordingDriver:
    """In-memory driver recording every lifecycle call."""

    name = "recording"
    description = "Records calls"

    def __init__(self, fail_at: Optional[str] = None, error: Optional[BaseException] = None, read: bool = True):
        self.calls: List[str] = []
        self.received = bytearray()
        self.fail_at = fail_at
        self.error = error
        self.read = read

    def _maybe_fail(self, stage: str) -> None:
        self.calls.append(stage)
        if self.fail_at == stage:
            raise self.error or RuntimeError(f"{stage} exploded")

    def load_env(self, prefix: str) -> None:
        self._maybe_fail("load_env")

    def load_flags(self, flags: Mapping[str, Any]) -> None:
        self._maybe_fail("load_flags")

    def init(self) -> None:
        self._maybe_fail("init")

    def push(self, stream: BinaryIO) -> None:
        if self.read:
            while True:
                chunk = stream.read(64 * 1024)
                if not chunk:
                    break
                self.received += chunk
        self._maybe_fail("push")

    def cleanup(self) -> None:
        self._maybe_fail("cleanup")


class OrchestratorTestCase(unittest.TestCase):
    def make_orchestrator(self, driver: RecordingDriver) -> PushOrchestrator:
        registry = DriverRegistry()
        registry.register("recording", lambda: driver)
        return PushOrchestrator(registry=registry)

    def run_with(self, driver: RecordingDriver, **kwargs):
        kwargs.setdefault("input_str", "hello")
        return self.make_orchestrator(driver).run(DeliveryRequest(driver_name="recording", **kwargs))


class TestLifecycle(OrchestratorTestCase):
    def test_successful_run(self):
        driver = RecordingDriver()
        result = self.run_with(driver)
        self.assertTrue(result.success)
        self.assertTrue(result.delivered)
        self.assertEqual(result.exit_code, 0)
        self.assertEqual(driver.received, b"hello")
        self.assertEqual(driver.calls, ["load_flags", "load_env", "init", "push", "cleanup"])

    def test_empty_driver_name(self):
        result = PushOrchestrator().run(DeliveryRequest(driver_name="", input_str="hello"))
        self.assertFalse(result.success)
        self.assertIsInstance(result.error, DriverNotFoundError)
        self.assertEqual(result.stage, "resolve")
        self.assertEqual(result.exit_code, 1)

    def test_unknown_driver_name(self):
        driver = RecordingDriver()
        result = self.make_orchestrator(driver).run(DeliveryRequest(driver_name="kafka", input_str="x"))
        self.assertIsInstance(result.error, DriverNotFoundError)
        self.assertEqual(driver.calls, [])

    def test_init_failure_skips_push_and_cleanup(self):
        driver = RecordingDriver(fail_at="init", error=BackendConnectionError("unreachable"))
        result = self.run_with(driver)
        self.assertFalse(result.success)
        self.assertFalse(result.delivered)
        self.assertEqual(result.stage, "init")
        self.assertEqual(driver.calls, ["load_flags", "load_env", "init"])
        self.assertEqual(driver.received, b"")

    def test_load_failure_stops_run(self):
        driver = RecordingDriver(fail_at="load_flags", error=ConfigurationError("bad flag"))
        result = self.run_with(driver)
        self.assertEqual(result.stage, "load_flags")
        self.assertEqual(driver.calls, ["load_flags"])

    def test_foreign_exceptions_are_wrapped_per_stage(self):
        cases = {
            "load_env": ConfigurationError,
            "init": BackendConnectionError,
            "push": DeliveryError,
            "cleanup": CleanupError,
        }
        for stage, error_class in cases.items():
            driver = RecordingDriver(fail_at=stage)
            result = self.run_with(driver)
            self.assertFalse(result.success, stage)
            self.assertEqual(result.stage, stage)
            self.assertIsInstance(result.error, error_class, stage)
            self.assertIsInstance(result.error.__cause__, RuntimeError, stage)

    def test_push_failure_still_cleans_up(self):
        driver = RecordingDriver(fail_at="push", error=DeliveryError("rejected"))
        result = self.run_with(driver)
        self.assertFalse(result.success)
        self.assertFalse(result.delivered)
        self.assertEqual(result.stage, "push")
        self.assertEqual(driver.calls.count("cleanup"), 1)
        self.assertIsNone(result.cleanup_error)

    def test_cleanup_failure_after_delivery(self):
        driver = RecordingDriver(fail_at="cleanup", error=CleanupError("close failed"))
        result = self.run_with(driver)
        self.assertFalse(result.success)
        self.assertTrue(result.delivered)
        self.assertEqual(result.stage, "cleanup")
        self.assertIsInstance(result.cleanup_error, CleanupError)
        self.assertEqual(result.exit_code, 1)

    def test_push_error_is_primary_when_cleanup_also_fails(self):
        class DoubleFailure(RecordingDriver):
            def cleanup(self):
                self.calls.append("cleanup")
                raise CleanupError("close failed")

        driver = DoubleFailure(fail_at="push", error=DeliveryError("rejected"))
        result = self.run_with(driver)
        self.assertIsInstance(result.error, DeliveryError)
        self.assertIsInstance(result.cleanup_error, CleanupError)
        self.assertEqual(result.stage, "push")

    def test_missing_input_file_still_cleans_up(self):
        driver = RecordingDriver()
        result = self.run_with(driver, input_str="", input_file="/does/not/exist.json")
        self.assertFalse(result.success)
        self.assertIsInstance(result.error, ConfigurationError)
        self.assertEqual(result.stage, "input")
        self.assertNotIn("push", driver.calls)
        self.assertEqual(driver.calls.count("cleanup"), 1)

    def test_driver_receives_input_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "in.json"
            path.write_bytes(b'{"id": 1}')
            driver = RecordingDriver()
            result = self.run_with(driver, input_str="", input_file=str(path))
            self.assertTrue(result.success)
            self.assertEqual(driver.received, b'{"id": 1}')

    def test_flags_and_prefix_are_forwarded(self):
        received = {}

        class FlagDriver(RecordingDriver):
            def load_flags(self, flags):
                received["flags"] = dict(flags)

            def load_env(self, prefix):
                received["prefix"] = prefix

        result = self.run_with(FlagDriver(), flags={"recording-url": "x"}, env_prefix="APP_")
        self.assertTrue(result.success)
        self.assertEqual(received, {"flags": {"recording-url": "x"}, "prefix": "APP_"})


class TestSecondaryOutput(OrchestratorTestCase):
    def test_output_file_matches_received_bytes(self):
        payload = bytes(range(256)) * (10 * 1024 * 1024 // 256)
        with tempfile.TemporaryDirectory() as tmpdir:
            source = Path(tmpdir) / "big.bin"
            source.write_bytes(payload)
            target = Path(tmpdir) / "out" / "copy.bin"
            driver = RecordingDriver()
            result = self.run_with(driver, input_str="", input_file=str(source), output_file=str(target))
            self.assertTrue(result.success)
            self.assertEqual(result.bytes_read, len(payload))
            self.assertEqual(target.read_bytes(), driver.received)
            self.assertEqual(driver.received, payload)

    def test_empty_payload(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = Path(tmpdir) / "empty.bin"
            source.write_bytes(b"")
            target = Path(tmpdir) / "copy.bin"
            driver = RecordingDriver()
            result = self.run_with(driver, input_str="", input_file=str(source), output_file=str(target))
            self.assertTrue(result.success)
            self.assertEqual(target.read_bytes(), b"")
            self.assertEqual(driver.received, b"")

    def test_sink_failure_aborts_push(self):
        class SwallowingDriver(RecordingDriver):
            def push(self, stream):
                self.calls.append("push")
                try:
                    stream.read()
                except OSError:
                    pass

        class BrokenSink(io.BytesIO):
            def write(self, data):
                raise OSError("disk full")

        driver = SwallowingDriver()
        with patch("pushx._drivers.orchestrator.open_output", return_value=BrokenSink()):
            result = self.run_with(driver, output_file="copy.bin")
        self.assertFalse(result.success)
        self.assertIsInstance(result.error, DeliveryError)
        self.assertIn("Secondary output", result.error_message)
        self.assertEqual(driver.calls.count("cleanup"), 1)

    def test_without_output_no_bytes_counted(self):
        driver = RecordingDriver()
        result = self.run_with(driver)
        self.assertTrue(result.success)
        self.assertEqual(result.bytes_read, 0)


class TestPushPayload(unittest.TestCase):
    def test_push_payload_with_custom_registry(self):
        driver = RecordingDriver()
        registry = DriverRegistry()
        registry.register("recording", lambda: driver)
        result = push_payload("recording", input_str="hello", registry=registry)
        self.assertTrue(result.success)
        self.assertEqual(driver.received, b"hello")

    def test_push_payload_fs_driver(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            result = push_payload(
                "fs",
                input_str='{"id": "42"}',
                flags={"fs-folder": tmpdir, "fs-key": "events/{{id}}.json"},
            )
            self.assertTrue(result.success, result.error_message)
            self.assertEqual((Path(tmpdir) / "events" / "42.json").read_text(), '{"id": "42"}')


if __name__ == "__main__":
    unittest.main()

"""Push orchestrator and registry factory."""

from typing import Any, BinaryIO, Callable, Dict, List, Optional

from pushx.exceptions import (
    BackendConnectionError,
    CleanupError,
    ConfigurationError,
    DeliveryError,
    PushxError,
)
from pushx.logging_config import logger

from .drivers import BUNDLED_DRIVERS
from .protocol import DeliveryRequest, Driver
from .registry import DriverRegistry
from .result import PushResult
from .stream import TeeReader, is_std_stream, open_input, open_output

# Error class used when a driver raises something outside the pushx hierarchy
STAGE_ERRORS: Dict[str, Callable[..., PushxError]] = {
    "load_flags": ConfigurationError,
    "load_env": ConfigurationError,
    "init": BackendConnectionError,
    "push": DeliveryError,
    "cleanup": CleanupError,
}


def create_default_registry() -> DriverRegistry:
    """
    Create a DriverRegistry with every bundled driver.

    Returns:
        Registry mapping each driver name to its class
    """
    registry = DriverRegistry()
    for driver_class in BUNDLED_DRIVERS:
        registry.register(driver_class.name, driver_class)
    return registry


def _run_stage(stage: str, driver_name: str, fn: Callable[..., Any], *args: Any) -> Any:
    """Run one lifecycle method, mapping foreign exceptions to the stage's error class."""
    logger.debug(f"[{driver_name}] {stage}")
    try:
        return fn(*args)
    except PushxError as e:
        if e.stage is None:
            e.stage = stage
        raise
    except Exception as e:
        raise STAGE_ERRORS[stage](f"{stage} failed: {e}", stage=stage) from e


class PushOrchestrator:
    """
    Drives one destination driver through a single push run.

    Stages, in order: resolve the driver, load_flags, load_env, init, open
    the input (and the optional secondary output), push, cleanup. The first
    failure stops the run; cleanup still runs whenever init succeeded.

    Example:
        orchestrator = PushOrchestrator()
        result = orchestrator.run(DeliveryRequest(driver_name="local", input_str="hello"))
        sys.exit(result.exit_code)
    """

    def __init__(self, registry: Optional[DriverRegistry] = None) -> None:
        """
        Initialize the PushOrchestrator.

        Args:
            registry: Optional custom registry (defaults to every bundled driver)
        """
        self._registry = registry or create_default_registry()

    @property
    def registry(self) -> DriverRegistry:
        """Get the driver registry."""
        return self._registry

    def run(self, request: DeliveryRequest) -> PushResult:
        """
        Execute a push run.

        Args:
            request: DeliveryRequest describing driver, input and output

        Returns:
            PushResult with the outcome; failures are reported, never raised
        """
        name = request.driver_name
        logger.info(f"Pushing payload with driver: {name or '<none>'}")

        try:
            driver = self._registry.resolve(name)
            _run_stage("load_flags", name, driver.load_flags, request.flags)
            _run_stage("load_env", name, driver.load_env, request.env_prefix)
            _run_stage("init", name, driver.init)
        except PushxError as e:
            logger.error(f"Driver {name or '<none>'} failed at {e.stage}: {e}")
            return PushResult.failure_result(driver_name=name, error=e)
        logger.debug(f"[{name}] initialized")

        error: Optional[PushxError] = None
        bytes_read = 0
        try:
            bytes_read = self._deliver(driver, request)
        except PushxError as e:
            logger.error(f"Driver {name} failed at {e.stage}: {e}")
            error = e

        cleanup_error = self._cleanup(driver, name)

        if error is not None:
            return PushResult.failure_result(
                driver_name=name,
                error=error,
                cleanup_error=cleanup_error,
                bytes_read=bytes_read,
            )
        if cleanup_error is not None:
            logger.warning(f"Payload delivered by {name}, but cleanup failed")
            return PushResult.failure_result(
                driver_name=name,
                error=cleanup_error,
                delivered=True,
                cleanup_error=cleanup_error,
                bytes_read=bytes_read,
            )

        logger.info(f"Successfully pushed payload with {name}")
        return PushResult.success_result(driver_name=name, bytes_read=bytes_read)

    def _deliver(self, driver: Driver, request: DeliveryRequest) -> int:
        """Open the streams and push. Returns bytes seen by the tee, 0 without one."""
        name = request.driver_name
        source = open_input(request)
        output: Optional[BinaryIO] = None
        try:
            if not request.output_file:
                _run_stage("push", name, driver.push, source)
                return 0

            output = open_output(request.output_file)
            tee = TeeReader(source, output)
            try:
                _run_stage("push", name, driver.push, tee)
            except PushxError as e:
                if tee.sink_error is not None:
                    raise DeliveryError(f"Secondary output write failed: {tee.sink_error}", stage="push") from e
                raise
            if tee.sink_error is not None:
                raise DeliveryError(f"Secondary output write failed: {tee.sink_error}", stage="push")
            try:
                output.flush()
            except OSError as e:
                raise DeliveryError(f"Secondary output write failed: {e}", stage="push") from e
            logger.debug(f"[{name}] mirrored {tee.bytes_read} bytes to {request.output_file}")
            return tee.bytes_read
        finally:
            if output is not None and not is_std_stream(output):
                output.close()
            if not is_std_stream(source):
                source.close()

    def _cleanup(self, driver: Driver, name: str) -> Optional[CleanupError]:
        try:
            _run_stage("cleanup", name, driver.cleanup)
        except CleanupError as e:
            logger.error(f"Driver {name} cleanup failed: {e}")
            return e
        except PushxError as e:
            logger.error(f"Driver {name} cleanup failed: {e}")
            return CleanupError(str(e), stage="cleanup")
        return None

    def list_drivers(self) -> List[Dict[str, Any]]:
        """
        List all registered drivers.

        Returns:
            List of driver info dicts
        """
        return self._registry.list_drivers()

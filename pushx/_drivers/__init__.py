"""Destination driver plugin architecture.

This module provides the plugin-based system that moves one payload into
one backend:
- A five-stage driver lifecycle (load_flags, load_env, init, push, cleanup)
- A registry mapping driver names to driver classes
- An orchestrator that runs the lifecycle and mirrors the payload to an
  optional secondary output

Configuration:
- Each driver reads its own environment variables under the run prefix
  (default ``PUSHX_``), e.g. PUSHX_HTTP_REQUEST_URL or PUSHX_PSQL_HOST
- Command line flags supplied by the operator win over the environment

Usage:
    from pushx._drivers import DeliveryRequest, PushOrchestrator

    orchestrator = PushOrchestrator()
    result = orchestrator.run(DeliveryRequest(
        driver_name="http",
        input_str='{"id": 42}',
        flags={"http-url": "https://example.com/hook"},
    ))
"""

from .drivers import BUNDLED_DRIVERS
from .orchestrator import PushOrchestrator, create_default_registry
from .protocol import BaseDriver, DeliveryRequest, Driver, Setting
from .registry import DriverRegistry
from .result import PushResult
from .stream import TeeReader

__all__ = [
    # Core types
    "DeliveryRequest",
    "Driver",
    "BaseDriver",
    "Setting",
    "PushResult",
    "TeeReader",
    # Registry and orchestration
    "DriverRegistry",
    "PushOrchestrator",
    "create_default_registry",
    "BUNDLED_DRIVERS",
]

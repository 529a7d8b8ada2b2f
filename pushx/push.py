"""
Public API for pushing a payload through a destination driver.

Usage:
    from pushx.push import push_payload

    # Send a literal payload to an HTTP endpoint
    result = push_payload(
        driver="http",
        input_str='{"id": 42}',
        flags={"http-url": "https://example.com/hook"},
    )

    # Push a file to Redis and keep a copy on disk
    result = push_payload(
        driver="redis-list",
        input_file="event.json",
        output_file="event.copy.json",
        flags={"redis-key": "events"},
    )
"""

from typing import Any, Mapping, Optional

from ._drivers import DeliveryRequest, DriverRegistry, PushOrchestrator, PushResult
from ._drivers.protocol import DEFAULT_ENV_PREFIX, STDIO_SENTINEL


def push_payload(
    driver: str,
    input_str: str = "",
    input_file: str = STDIO_SENTINEL,
    output_file: Optional[str] = None,
    flags: Optional[Mapping[str, Any]] = None,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    registry: Optional[DriverRegistry] = None,
) -> PushResult:
    """
    Push one payload to a destination.

    Args:
        driver: Registered driver name, e.g. "http" or "aws-s3"
        input_str: Literal payload; takes precedence over input_file
        input_file: File to read the payload from, "-" for stdin
        output_file: Optional secondary output, "-" for stdout
        flags: Driver settings keyed by flag name, e.g. {"psql-host": "db"}
        env_prefix: Prefix of the environment variables the driver reads
        registry: Optional custom registry (defaults to every bundled driver)

    Returns:
        PushResult describing the outcome; failures are not raised
    """
    request = DeliveryRequest(
        driver_name=driver,
        input_str=input_str,
        input_file=input_file,
        output_file=output_file,
        flags=dict(flags or {}),
        env_prefix=env_prefix,
    )
    return PushOrchestrator(registry=registry).run(request)


# Re-export key types for convenience
__all__ = [
    "push_payload",
    "DeliveryRequest",
    "PushResult",
]

"""Local driver: writes the payload to stdout."""

import sys
from typing import BinaryIO

from pushx.logging_config import logger

from ..protocol import BaseDriver
from ..stream import copy_stream


class LocalDriver(BaseDriver):
    """Copies the payload to standard output. Useful for testing pipelines."""

    name = "local"
    description = "Write the payload to stdout"

    def push(self, stream: BinaryIO) -> None:
        sink = sys.stdout.buffer
        written = copy_stream(stream, sink)
        sink.flush()
        logger.debug(f"[local] wrote {written} bytes to stdout")

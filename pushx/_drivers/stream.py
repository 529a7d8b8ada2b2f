"""Input and secondary-output streams for a push run."""

import io
import sys
from pathlib import Path
from typing import BinaryIO, Optional

from pushx.exceptions import ConfigurationError
from pushx.logging_config import logger

from .protocol import STDIO_SENTINEL, DeliveryRequest

# Read size used by drivers that copy a stream in chunks
CHUNK_SIZE = 64 * 1024


def open_input(request: DeliveryRequest) -> BinaryIO:
    """
    Open the payload stream for a run.

    A literal input string wins over the input file; "-" selects stdin.

    Raises:
        ConfigurationError: If the input file cannot be opened
    """
    if request.input_str:
        logger.debug("Input is a literal string")
        return io.BytesIO(request.input_str.encode("utf-8"))
    if not request.input_file or request.input_file == STDIO_SENTINEL:
        logger.debug("Input is stdin")
        return sys.stdin.buffer
    logger.debug(f"Input is file: {request.input_file}")
    try:
        return open(request.input_file, "rb")
    except OSError as e:
        raise ConfigurationError(f"Cannot open input file {request.input_file}: {e}", stage="input")


def open_output(path: str) -> BinaryIO:
    """
    Open the secondary output; "-" selects stdout.

    Raises:
        ConfigurationError: If the file cannot be created
    """
    if path == STDIO_SENTINEL:
        logger.debug("Secondary output is stdout")
        return sys.stdout.buffer
    logger.debug(f"Secondary output is file: {path}")
    try:
        parent_dir = Path(path).parent
        if parent_dir != Path(".") and not parent_dir.exists():
            parent_dir.mkdir(parents=True, exist_ok=True)
        return open(path, "wb")
    except OSError as e:
        raise ConfigurationError(f"Cannot open output file {path}: {e}", stage="output")


def is_std_stream(stream: BinaryIO) -> bool:
    return stream is sys.stdin.buffer or stream is sys.stdout.buffer


class TeeReader(io.RawIOBase):
    """
    Readable stream that copies every byte it returns to a sink.

    Bytes reach the sink before the reader hands them to the caller, in
    the order they were read. A sink failure is remembered in ``sink_error``
    and re-raised, so the push fails even if the consumer swallows it.
    """

    def __init__(self, source: BinaryIO, sink: BinaryIO) -> None:
        super().__init__()
        self._source = source
        self._sink = sink
        self.bytes_read = 0
        self.sink_error: Optional[BaseException] = None

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:  # type: ignore[override]
        if self.sink_error is not None:
            raise self.sink_error
        data = self._source.read(len(buffer))
        if not data:
            return 0
        size = len(data)
        try:
            self._sink.write(data)
        except (OSError, ValueError) as e:
            self.sink_error = e
            raise
        buffer[:size] = data
        self.bytes_read += size
        return size


def copy_stream(stream: BinaryIO, sink: BinaryIO) -> int:
    """Copy a stream to a sink in chunks, returning the number of bytes copied."""
    total = 0
    while True:
        chunk = stream.read(CHUNK_SIZE)
        if not chunk:
            return total
        sink.write(chunk)
        total += len(chunk)

"""Generator-based line reading from the input stream."""

from typing import BinaryIO, Generator

BUF_SIZE = 4096


def read_chunks(stream: BinaryIO, buffer_size: int = BUF_SIZE) -> Generator[bytes, None, None]:
    """Yield raw byte chunks from stream, one per line.

    A chunk ends at b"\\n", after buffer_size - 1 bytes when a line is longer
    than the read buffer, or at end of stream for a final partial line.
    Stops when the stream is exhausted.
    """
    limit = buffer_size - 1
    while True:
        chunk = stream.readline(limit)
        if not chunk:
            return
        yield chunk

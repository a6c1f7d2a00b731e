"""Tee engine: append input to a live file and rotate it by size."""

import logging
import os
from dataclasses import dataclass
from typing import BinaryIO

from logrotee.config import Config
from logrotee.launcher import CompressionLauncher
from logrotee.naming import date_chunk_name, next_index, numeric_chunk_name, reclaim_slot

logger = logging.getLogger(__name__)


class EngineError(Exception):
    """Raised when the live log file cannot be opened."""


@dataclass
class RotationState:
    current_handle: BinaryIO | None = None
    bytes_written: int = 0
    sequence_index: int = 0


def should_rotate(bytes_written: int, chunk_size: int, line: bytes) -> bool:
    """Decide whether to rotate after writing line.

    Rotation waits for a line break unless the chunk has overshot its size
    by 20%, in which case a partial line is split across two chunks.
    """
    if not line or bytes_written < chunk_size:
        return False
    if line.endswith(b"\n"):
        return True
    return bytes_written >= chunk_size * 12 // 10


class RotationEngine:
    def __init__(self, config: Config, passthrough: BinaryIO | None = None,
                 launcher: CompressionLauncher | None = None, time_func=None):
        self._config = config
        self._passthrough = None if config.null_stdout else passthrough
        self._launcher = launcher or CompressionLauncher(config.compress_command)
        self._time_func = time_func
        self._state = RotationState()
        self.rotation_count = 0
        self.passthrough_broken = False

    @property
    def state(self) -> RotationState:
        return self._state

    def start(self):
        """Open the first live file. No rename or compression happens here."""
        self._open()

    def write_line(self, line: bytes) -> str | None:
        """Write a chunk of input. Returns the rotated chunk path, if any."""
        state = self._state
        state.current_handle.write(line)
        state.current_handle.flush()
        if self._passthrough is not None:
            self._echo(line)

        state.bytes_written += len(line)
        if should_rotate(state.bytes_written, self._config.chunk_size, line):
            return self._rotate()
        return None

    def finish(self):
        """Close the live file. End of input is not a rotation."""
        handle = self._state.current_handle
        if handle is not None and not handle.closed:
            handle.close()
        self._state.current_handle = None

    def _echo(self, line: bytes):
        try:
            self._passthrough.write(line)
            self._passthrough.flush()
        except BrokenPipeError:
            logger.warning("Output pipe closed, continuing to write %s only",
                           self._config.log_file_path)
            self._passthrough = None
            self.passthrough_broken = True

    def _open(self):
        path = self._config.log_file_path
        try:
            self._state.current_handle = open(path, "ab")
        except OSError as e:
            raise EngineError(f"Error opening {path}: {e}") from e

    def _next_chunk_name(self) -> str:
        config = self._config
        if config.dates:
            now = self._time_func() if self._time_func else None
            return date_chunk_name(config.log_file_path, now)

        state = self._state
        name = numeric_chunk_name(config.log_file_path, state.sequence_index)
        reclaim_slot(name, config.compress_suffix)
        state.sequence_index = next_index(state.sequence_index, config.ring_size)
        return name

    def _rotate(self) -> str | None:
        """Rename-and-create rotation. Returns the chunk path, or None if the rename failed."""
        chunk_path = self._next_chunk_name()
        self.finish()

        rotated = None
        try:
            os.rename(self._config.log_file_path, chunk_path)
            rotated = chunk_path
        except OSError as e:
            logger.error("Cannot rename %s to %s: %s",
                         self._config.log_file_path, chunk_path, e)

        if rotated and self._launcher.enabled:
            self._launcher.launch(rotated)

        self._open()
        self._state.bytes_written = 0
        self.rotation_count += 1
        if rotated:
            logger.info("Rotated %s (%d rotations)", rotated, self.rotation_count)
        return rotated

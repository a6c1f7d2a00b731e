"""logrotee: tee stdin into size-rotated log files, compressing old chunks."""

import logging
import os
import sys

from logrotee.config import USAGE_EXAMPLE, ConfigError, load_config
from logrotee.engine import EngineError, RotationEngine
from logrotee.launcher import ignore_child_exits
from logrotee.source import read_chunks

logger = logging.getLogger(__name__)


def _silence_stdout():
    # stdout's reader is gone; point fd 1 at /dev/null so the interpreter's
    # final flush does not raise again.
    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, sys.stdout.fileno())
    os.close(devnull)


def run(config, stdin=None, stdout=None) -> int:
    """Pump stdin through the rotation engine. Returns the exit status."""
    stdin = stdin or sys.stdin.buffer
    stdout = stdout or sys.stdout.buffer

    engine = RotationEngine(config, passthrough=stdout)
    try:
        engine.start()
    except EngineError as e:
        logger.error("%s", e)
        return 1

    lines = 0
    try:
        for line in read_chunks(stdin, config.buffer_size):
            engine.write_line(line)
            lines += 1
    except KeyboardInterrupt:
        logger.info("Interrupted after %d lines", lines)
        return 130
    except (EngineError, OSError) as e:
        logger.error("Lost the log sink: %s", e)
        return 1
    finally:
        engine.finish()
        if engine.passthrough_broken and stdout is sys.stdout.buffer:
            _silence_stdout()

    logger.info("End of input: %d lines, %d rotations", lines, engine.rotation_count)
    return 0


def main(argv=None):
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [logrotee] %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    try:
        config = load_config(argv)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        print(USAGE_EXAMPLE, file=sys.stderr)
        sys.exit(1)

    logging.getLogger().setLevel(config.log_level)
    if config.config_file:
        logger.info("Loaded YAML config from %s", config.config_file)
    logger.info(
        "Config: log=%s, chunk=%d bytes, max_files=%d, dates=%s, compress=%r, null=%s",
        config.log_file_path, config.chunk_size, config.max_files,
        config.dates, config.compress_command, config.null_stdout,
    )

    if config.compression_enabled:
        ignore_child_exits()

    sys.exit(run(config))


if __name__ == "__main__":
    main()

"""Fire-and-forget compression of rotated chunks."""

import logging
import signal
import subprocess
import time

logger = logging.getLogger(__name__)

PLACEHOLDER = "{}"
SPAWN_ATTEMPTS = 3
SPAWN_RETRY_DELAY = 1.0


def build_command(template: str, chunk_path: str) -> str:
    """Substitute chunk_path for the first placeholder.

    A template without a placeholder is returned unchanged; the path is
    never appended implicitly.
    """
    return template.replace(PLACEHOLDER, chunk_path, 1)


def ignore_child_exits():
    """Let the kernel reap exited children so none are left as zombies.

    Installed once at startup; the launcher never waits on its children.
    """
    signal.signal(signal.SIGCHLD, signal.SIG_IGN)


def _restore_child_signals():
    # Runs in the child between fork and exec: the shell must be able to wait
    # on its own children, which an inherited SIG_IGN would prevent.
    signal.signal(signal.SIGCHLD, signal.SIG_DFL)


class CompressionLauncher:
    def __init__(self, command_template: str, sleep_func=None):
        self._template = command_template
        self._sleep = sleep_func or time.sleep

    @property
    def enabled(self) -> bool:
        return bool(self._template)

    def launch(self, chunk_path: str) -> int | None:
        """Start the compression command for chunk_path in the background.

        Returns the child's pid, or None if no process could be started.
        The child gets its own session, /dev/null for stdin and stdout, and
        no file descriptors other than stderr from this process.
        """
        command = build_command(self._template, chunk_path)
        for attempt in range(1, SPAWN_ATTEMPTS + 1):
            try:
                proc = subprocess.Popen(
                    command,
                    shell=True,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.DEVNULL,
                    close_fds=True,
                    start_new_session=True,
                    preexec_fn=_restore_child_signals,
                )
            except BlockingIOError as e:
                logger.warning(
                    "Cannot fork for %r (attempt %d/%d): %s", command, attempt, SPAWN_ATTEMPTS, e
                )
                if attempt < SPAWN_ATTEMPTS:
                    self._sleep(SPAWN_RETRY_DELAY)
                continue
            except OSError as e:
                logger.error("Error starting compression %r: %s", command, e)
                return None
            logger.info("Compressing %s (pid %d): %s", chunk_path, proc.pid, command)
            return proc.pid

        logger.error("Giving up on compression of %s", chunk_path)
        return None

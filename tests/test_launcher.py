"""Tests for logrotee/launcher.py."""

import os
import signal
import subprocess
import time
from unittest import mock

from logrotee.launcher import (
    SPAWN_ATTEMPTS,
    CompressionLauncher,
    build_command,
    ignore_child_exits,
)


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return False


class TestBuildCommand:
    def test_placeholder_replaced(self):
        assert build_command("gzip {}", "/var/log/app.log.0") == "gzip /var/log/app.log.0"

    def test_only_first_placeholder(self):
        assert build_command("cp {} {}.bak", "a.0") == "cp a.0 {}.bak"

    def test_no_placeholder_runs_unmodified(self):
        assert build_command("sync", "/var/log/app.log.0") == "sync"


class TestCompressionLauncher:
    def test_disabled_without_template(self):
        assert CompressionLauncher("").enabled is False
        assert CompressionLauncher("gzip {}").enabled is True

    def test_popen_arguments(self):
        with mock.patch("logrotee.launcher.subprocess.Popen") as popen:
            popen.return_value.pid = 4242
            pid = CompressionLauncher("gzip {}").launch("/logs/app.log.1")

        assert pid == 4242
        args, kwargs = popen.call_args
        assert args == ("gzip /logs/app.log.1",)
        assert kwargs["shell"] is True
        assert kwargs["close_fds"] is True
        assert kwargs["start_new_session"] is True
        assert kwargs["stdin"] is subprocess.DEVNULL
        assert kwargs["stdout"] is subprocess.DEVNULL
        popen.return_value.wait.assert_not_called()

    def test_spawn_error_is_not_fatal(self):
        with mock.patch("logrotee.launcher.subprocess.Popen", side_effect=OSError("no shell")):
            assert CompressionLauncher("gzip {}").launch("x.0") is None

    def test_eagain_retried_then_succeeds(self):
        sleeps = []
        proc = mock.Mock(pid=7)
        with mock.patch(
            "logrotee.launcher.subprocess.Popen",
            side_effect=[BlockingIOError("EAGAIN"), proc],
        ) as popen:
            pid = CompressionLauncher("gzip {}", sleep_func=sleeps.append).launch("x.0")

        assert pid == 7
        assert popen.call_count == 2
        assert len(sleeps) == 1

    def test_eagain_gives_up(self):
        sleeps = []
        with mock.patch(
            "logrotee.launcher.subprocess.Popen", side_effect=BlockingIOError("EAGAIN")
        ) as popen:
            pid = CompressionLauncher("gzip {}", sleep_func=sleeps.append).launch("x.0")

        assert pid is None
        assert popen.call_count == SPAWN_ATTEMPTS
        assert len(sleeps) == SPAWN_ATTEMPTS - 1

    def test_launch_does_not_wait(self, tmp_path):
        marker = tmp_path / "done"
        launcher = CompressionLauncher(f"sleep 2; touch {marker}")

        started = time.monotonic()
        pid = launcher.launch(str(tmp_path / "app.log.0"))
        elapsed = time.monotonic() - started

        assert pid is not None
        assert elapsed < 1.5
        assert not marker.exists()
        os.kill(pid, signal.SIGKILL)
        try:
            os.waitpid(pid, 0)
        except ChildProcessError:
            pass

    def test_runs_gzip_on_chunk(self, tmp_path):
        chunk = tmp_path / "app.log.0"
        chunk.write_bytes(b"payload\n" * 100)

        pid = CompressionLauncher("gzip {}").launch(str(chunk))

        assert pid is not None
        assert _wait_for(lambda: not chunk.exists())
        assert (tmp_path / "app.log.0.gz").exists()


class TestIgnoreChildExits:
    def test_sets_sigchld_ignored(self):
        previous = signal.getsignal(signal.SIGCHLD)
        try:
            ignore_child_exits()
            assert signal.getsignal(signal.SIGCHLD) is signal.SIG_IGN
        finally:
            signal.signal(signal.SIGCHLD, previous)

    def test_children_reaped_automatically(self):
        previous = signal.getsignal(signal.SIGCHLD)
        try:
            ignore_child_exits()
            pid = CompressionLauncher("true").launch("unused")
            assert pid is not None
            assert _wait_for(lambda: not _is_zombie_or_alive(pid))
        finally:
            signal.signal(signal.SIGCHLD, previous)


def _is_zombie_or_alive(pid):
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    return True

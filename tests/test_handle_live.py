"""Tests for ProcessHandle against the running kernel, checked with psutil."""

import os
import subprocess
import sys
import time

import psutil
import pytest
from conftest import linux_only

from pyps.errors import NoSuchProcess, ZombieProcess
from pyps.handle import ProcessHandle, process_iter
from pyps.models import IdTriple, ProcessStatus

pytestmark = linux_only


def wait_for_status(handle: ProcessHandle, status: ProcessStatus, timeout: float = 5.0) -> None:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if handle.status() is status:
            return
        time.sleep(0.02)
    pytest.fail(f"process {handle.pid} never reached {status.value}")


@pytest.fixture
def sleeper():
    """A child process that sleeps until killed."""
    child = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
    try:
        yield child
    finally:
        if child.returncode is None:
            child.kill()
            child.wait(timeout=5.0)


class TestSelf:
    """Tests on the test runner's own process."""

    def test_default_pid_is_self(self):
        """Test a handle without a pid refers to the calling process."""
        assert ProcessHandle().pid == os.getpid()

    def test_matches_psutil(self):
        """Test basic fields agree with psutil."""
        h = ProcessHandle()
        ref = psutil.Process()

        uids = ref.uids()

        assert h.create_time == pytest.approx(ref.create_time(), abs=1.0)
        assert h.ppid() == ref.ppid()
        # psutil extends names the kernel truncated to 15 bytes
        assert ref.name().startswith(h.name())
        assert h.cmdline() == ref.cmdline()
        assert h.num_threads() >= 1
        assert h.exe() == ref.exe()
        assert h.cwd() == ref.cwd()
        assert h.uids() == IdTriple(uids.real, uids.effective, uids.saved)

    def test_ids_match_os(self):
        """Test the real ids agree with the os module."""
        h = ProcessHandle()

        assert h.uids().real == os.getuid()
        assert h.uids().effective == os.geteuid()
        assert h.gids().real == os.getgid()

    def test_environ_contains_path(self):
        """Test the startup environment is readable for our own process."""
        environ = ProcessHandle().environ()

        assert any(entry.startswith("PATH=") for entry in environ)

    def test_memory_and_cpu(self):
        """Test live accounting values are plausible."""
        h = ProcessHandle()

        assert h.memory_info().rss > 0
        assert h.memory_info().vms >= h.memory_info().rss
        assert h.cpu_times().user >= 0.0

    def test_parent(self):
        """Test the parent handle is our parent process."""
        parent = ProcessHandle().parent()

        assert parent is not None
        assert parent.pid == os.getppid()
        assert parent.is_running()

    def test_self_in_process_iter(self):
        """Test the current process is enumerated."""
        assert ProcessHandle() in set(process_iter())


class TestLifecycle:
    """Tests that follow a child process through exit."""

    def test_running_then_gone(self, sleeper):
        """Test is_running flips to false after the child is reaped."""
        h = ProcessHandle(sleeper.pid)
        assert h.is_running()
        assert h.status() in (
            ProcessStatus.SLEEPING,
            ProcessStatus.RUNNING,
            ProcessStatus.DISK_SLEEP,
        )

        sleeper.kill()
        sleeper.wait(timeout=5.0)

        assert h.is_running() is False
        with pytest.raises(NoSuchProcess):
            h.name()
        assert h.format().status == "terminated"

    def test_zombie(self, sleeper):
        """Test an unreaped child is a zombie that still counts as running."""
        h = ProcessHandle(sleeper.pid)
        os.kill(sleeper.pid, 9)

        wait_for_status(h, ProcessStatus.ZOMBIE)

        assert h.is_running() is True
        assert h.ppid() == os.getpid()
        with pytest.raises(ZombieProcess):
            h.memory_info()
        with pytest.raises(ZombieProcess):
            h.cmdline()
        with pytest.raises(ZombieProcess):
            h.cpu_times()

        sleeper.wait(timeout=5.0)

        assert h.is_running() is False

    def test_reconstructed_handle(self, sleeper):
        """Test a handle rebuilt from (pid, create_time) validates the same way."""
        original = ProcessHandle(sleeper.pid)
        rebuilt = ProcessHandle(original.pid, original.create_time)
        forged = ProcessHandle(original.pid, original.create_time - 10.0)

        assert rebuilt == original
        assert rebuilt.is_running()
        assert not forged.is_running()
        with pytest.raises(NoSuchProcess):
            forged.cmdline()

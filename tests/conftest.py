"""Shared fixtures: a synthetic procfs tree for deterministic tests."""

import shutil
import sys
from pathlib import Path

import pytest

from pyps.calibration import Calibration
from pyps.config import Settings

BOOT_TIME = 1_700_000_000
CLOCK_TICKS = 100

linux_only = pytest.mark.skipif(
    not sys.platform.startswith("linux"), reason="requires Linux procfs"
)


class FakeProcfs:
    """Builds /proc-like directories under a temporary root."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)
        (self.root / "stat").write_bytes(
            b"cpu  10 0 10 1000 0 0 0 0 0 0\n"
            b"intr 12345\n"
            b"ctxt 678\n"
            b"btime %d\n"
            b"processes 4242\n" % BOOT_TIME
        )
        self.settings = Settings(procfs_root=root, clock_ticks=CLOCK_TICKS)
        self.calibration = Calibration(self.settings)

    def create_time(self, starttime: int) -> float:
        """Expected creation time for a stat starttime."""
        return BOOT_TIME + starttime / CLOCK_TICKS

    def add_process(
        self,
        pid: int,
        name: str = "sleep",
        *,
        state: str = "S",
        ppid: int = 1,
        starttime: int = 5000,
        cmdline: bytes = b"sleep\x0060\x00",
        environ: bytes = b"HOME=/root\x00PATH=/usr/bin\x00",
        uids: tuple[int, int, int] = (1000, 1000, 1000),
        gids: tuple[int, int, int] = (100, 100, 100),
        statm: bytes = b"2048 256 128 16 0 512 0\n",
        exe: str | None = "/usr/bin/sleep",
        cwd: str | None = "/home/user",
        **stat_fields,
    ) -> Path:
        """Create /<root>/<pid> with every file pyps reads."""
        pdir = self.root / str(pid)
        pdir.mkdir()
        self.write_stat(pid, name, state=state, ppid=ppid, starttime=starttime, **stat_fields)
        (pdir / "cmdline").write_bytes(cmdline)
        (pdir / "environ").write_bytes(environ)
        (pdir / "status").write_bytes(
            b"Name:\t%s\n"
            b"Umask:\t0022\n"
            b"State:\t%s (sleeping)\n"
            b"Tgid:\t%d\n"
            b"Pid:\t%d\n"
            b"PPid:\t%d\n"
            b"TracerPid:\t0\n"
            b"Uid:\t%d\t%d\t%d\t%d\n"
            b"Gid:\t%d\t%d\t%d\t%d\n"
            b"FDSize:\t64\n"
            % (
                name.encode(),
                state.encode(),
                pid,
                pid,
                ppid,
                *uids,
                uids[2],
                *gids,
                gids[2],
            )
        )
        (pdir / "statm").write_bytes(statm)
        if exe is not None:
            (pdir / "exe").symlink_to(exe)
        if cwd is not None:
            (pdir / "cwd").symlink_to(cwd)
        return pdir

    def write_stat(
        self,
        pid: int,
        name: str = "sleep",
        *,
        state: str = "S",
        ppid: int = 1,
        starttime: int = 5000,
        tty_nr: int = 0,
        utime: int = 150,
        stime: int = 50,
        cutime: int = 20,
        cstime: int = 10,
        nice: int = 0,
        num_threads: int = 1,
    ) -> None:
        """(Re)write a kernel-shaped stat line, with trailing fields past the 20th."""
        fields = [
            state, ppid, pid, pid, tty_nr, -1, 4194304,
            100, 0, 2, 0,
            utime, stime, cutime, cstime,
            20, nice, num_threads, 0, starttime,
            8388608, 256, 18446744073709551615,
        ]
        line = f"{pid} ({name}) " + " ".join(str(f) for f in fields) + "\n"
        (self.root / str(pid) / "stat").write_bytes(line.encode())

    def remove(self, pid: int) -> None:
        """Make a process vanish."""
        shutil.rmtree(self.root / str(pid))


@pytest.fixture
def fake_proc(tmp_path: Path) -> FakeProcfs:
    """An empty synthetic procfs with a btime line."""
    return FakeProcfs(tmp_path / "proc")

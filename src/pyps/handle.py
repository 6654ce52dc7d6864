"""
Process handles with PID-reuse detection.

A :class:`ProcessHandle` remembers a pid together with the creation time of
the process that owned it when the handle was made. Every query re-reads
/proc/<pid>/stat and compares creation times before trusting anything else,
so a recycled pid is reported as :class:`NoSuchProcess` instead of silently
describing an unrelated process.
"""

import errno
import os
import pwd
from collections.abc import Iterator
from typing import NoReturn

from pyps.calibration import Calibration, default_calibration
from pyps.errors import (
    AccessDenied,
    NoSuchProcess,
    ParseFailure,
    PsError,
    ZombieProcess,
)
from pyps.log import get_logger
from pyps.models import (
    STATE_CODES,
    ZOMBIE_STATE,
    CpuTimes,
    IdTriple,
    MemoryInfo,
    ProcessFormat,
    ProcessStatus,
    StatRecord,
)
from pyps.parser import parse_id_triple, parse_statm, split_nul_list
from pyps.procfs import pid_path, pids, read_file, read_stat, readlink
from pyps.triage import classify

logger = get_logger("pyps.handle")

_DELETED_SUFFIX = " (deleted)"


class ProcessHandle:
    """
    A reference to one OS process that survives pid recycling.

    The pair ``(pid, create_time)`` identifies the process. Accessors raise
    NoSuchProcess once the pid is gone or belongs to another process, and
    never return data read from a different process.

    Live-data accessors (``cmdline``, ``environ``, ``cwd``, ``exe``,
    ``memory_info``, ``cpu_times`` and ``num_threads``) raise ZombieProcess
    for a process that has exited but not been reaped. The others still
    answer for zombies.
    """

    def __init__(
        self,
        pid: int | None = None,
        create_time: float | None = None,
        *,
        calibration: Calibration | None = None,
    ) -> None:
        """
        Open a handle.

        Args:
            pid: Process id. Defaults to the calling process.
            create_time: Known creation time, e.g. from a serialized handle.
                If omitted it is read from procfs now.
            calibration: Boot time / clock tick context. Defaults to the
                shared :func:`default_calibration`.

        Raises:
            NoSuchProcess: If the process does not exist.
            AccessDenied: If its stat record cannot be read.
            ParseFailure: If its stat record is malformed.
        """
        if pid is None:
            pid = os.getpid()
        if pid < 0:
            raise ValueError(f"pid must be a non-negative integer, got {pid}")

        self._calibration = calibration if calibration is not None else default_calibration()
        self._settings = self._calibration.settings
        self._pid = pid
        self._gone = False

        if create_time is None:
            stat = self._read_stat()
            create_time = self._calibration.creation_time(stat.starttime)
        self._create_time = float(create_time)

    @classmethod
    def open(
        cls,
        pid: int | None = None,
        create_time: float | None = None,
        *,
        calibration: Calibration | None = None,
    ) -> "ProcessHandle":
        """Same as calling the constructor."""
        return cls(pid, create_time, calibration=calibration)

    @property
    def pid(self) -> int:
        """The process id."""
        return self._pid

    @property
    def create_time(self) -> float:
        """Creation time in seconds since the epoch. The identity witness."""
        return self._create_time

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProcessHandle):
            return NotImplemented
        return (self._pid, self._create_time) == (other._pid, other._create_time)

    def __hash__(self) -> int:
        return hash((self._pid, self._create_time))

    def __repr__(self) -> str:
        info = self.format()
        return (
            f"<ProcessHandle pid={info.pid} name={info.name!r} "
            f"status={info.status} create_time={info.create_time}>"
        )

    # ---------------- Identity protocol ---------------- #

    def _read_stat(self) -> StatRecord:
        """Read a fresh stat record, raising a triaged error on failure."""
        try:
            return read_stat(self._settings, self._pid)
        except (OSError, MemoryError) as e:
            err = classify(e, self._pid, self._settings)
            if isinstance(err, NoSuchProcess):
                self._gone = True
            raise err from e

    def _check(self, require_live: bool = False) -> StatRecord:
        """
        Confirm the pid still belongs to this handle's process.

        Args:
            require_live: Also reject zombies.

        Returns:
            The stat record read during the check.
        """
        stat = self._read_stat()
        if self._calibration.creation_time(stat.starttime) != self._create_time:
            self._gone = True
            logger.debug("pid reused", pid=self._pid, create_time=self._create_time)
            raise NoSuchProcess(self._pid)
        if require_live and stat.state == ZOMBIE_STATE:
            logger.debug("zombie process", pid=self._pid)
            raise ZombieProcess(self._pid)
        return stat

    def _check_for_zombie(self, err: BaseException) -> NoReturn:
        """Explain a failed secondary read: gone, zombie, or the error itself."""
        self._check(require_live=True)
        raise classify(err, self._pid, self._settings) from err

    def _read(self, name: str, buffer_size: int) -> bytes:
        try:
            return read_file(pid_path(self._settings, self._pid, name), buffer_size)
        except (OSError, MemoryError) as e:
            self._check_for_zombie(e)

    # ---------------- Liveness ---------------- #

    def is_running(self) -> bool:
        """
        Whether the pid still refers to this handle's process.

        Never raises. A zombie whose creation time is unchanged counts as
        running: it still exists until its parent reaps it.

        Only a vanished or reused pid makes the answer stick: after that the
        handle returns False without reading procfs again. A False caused by
        AccessDenied or a transient read error is not remembered, so a later
        call may return True.
        """
        if self._gone:
            return False
        try:
            stat = self._read_stat()
            ctime = self._calibration.creation_time(stat.starttime)
        except PsError:
            return False
        if ctime != self._create_time:
            self._gone = True
            return False
        return True

    def format(self) -> ProcessFormat:
        """
        Describe the handle for printing, even if the process has ended.

        The pid is not validated here: a reused pid shows the new owner's
        name and status next to this handle's creation time.
        """
        try:
            stat = self._read_stat()
        except PsError:
            return ProcessFormat("???", self._pid, self._create_time, "terminated")
        status = STATE_CODES.get(stat.state)
        return ProcessFormat(
            os.fsdecode(stat.name),
            self._pid,
            self._create_time,
            status.value if status is not None else "unknown",
        )

    # ---------------- Stat based accessors ---------------- #

    def ppid(self) -> int:
        """Parent process id."""
        return self._check().ppid

    def parent(self) -> "ProcessHandle | None":
        """
        Open a handle on the parent process.

        Returns None when the parent pid is 0 (the process was started by
        the kernel).

        Note:
            This is racy. The parent can exit, and its pid be reused, between
            reading the parent pid and the new handle capturing its creation
            time. The returned handle may then describe an unrelated process,
            or construction may fail with NoSuchProcess.
        """
        ppid = self.ppid()
        if ppid == 0:
            return None
        return ProcessHandle(ppid, calibration=self._calibration)

    def name(self) -> str:
        """Command name, as the kernel truncates it (15 bytes)."""
        return os.fsdecode(self._check().name)

    def status(self) -> ProcessStatus:
        """
        Current scheduler state.

        Raises:
            ParseFailure: If the kernel reports a state code we do not know.
        """
        state = self._check().state
        try:
            return STATE_CODES[state]
        except KeyError:
            raise ParseFailure(self._pid, f"unknown process status {state!r}") from None

    def terminal(self) -> int | None:
        """Controlling terminal device number, or None if there is none."""
        tty_nr = self._check().tty_nr
        return tty_nr if tty_nr != 0 else None

    def num_threads(self) -> int:
        """Number of threads. Raises ZombieProcess for a zombie."""
        return self._check(require_live=True).num_threads

    def nice(self) -> int:
        """Scheduling niceness, -20 (highest priority) to 19."""
        return self._check().nice

    def cpu_times(self) -> CpuTimes:
        """
        User and system CPU time of the process and its waited-for children.

        Raises:
            ZombieProcess: If the process has exited but not been reaped.
        """
        stat = self._check(require_live=True)
        ticks = self._calibration.clock_ticks()
        return CpuTimes(
            user=stat.utime / ticks,
            system=stat.stime / ticks,
            children_user=stat.cutime / ticks,
            children_system=stat.cstime / ticks,
        )

    # ---------------- /proc/<pid>/status ---------------- #

    def uids(self) -> IdTriple:
        """Real, effective and saved user ids."""
        return self._ids(b"Uid:")

    def gids(self) -> IdTriple:
        """Real, effective and saved group ids."""
        return self._ids(b"Gid:")

    def _ids(self, label: bytes) -> IdTriple:
        data = self._read("status", self._settings.stat_buffer_size)
        self._check()
        try:
            return parse_id_triple(data, label)
        except ParseFailure as e:
            raise ParseFailure(self._pid, e.msg) from e

    def username(self) -> str:
        """Name of the real user, or the uid as a string if it has no entry."""
        uid = self.uids().real
        try:
            return pwd.getpwuid(uid).pw_name
        except KeyError:
            return str(uid)

    # ---------------- Live-data accessors ---------------- #

    def cmdline(self) -> list[str]:
        """Command line arguments. Empty for kernel threads."""
        data = self._read("cmdline", self._settings.cmdline_buffer_size)
        self._check(require_live=True)
        return split_nul_list(data)

    def environ(self) -> list[str]:
        """Environment as ``NAME=value`` strings, as the process was started."""
        data = self._read("environ", self._settings.environ_buffer_size)
        self._check(require_live=True)
        return split_nul_list(data)

    def cwd(self) -> str:
        """Current working directory."""
        try:
            path = readlink(pid_path(self._settings, self._pid, "cwd"), self._settings)
        except OSError as e:
            self._check_for_zombie(e)
        self._check(require_live=True)
        return path

    def exe(self) -> str | None:
        """
        Path of the running executable.

        Returns None if the process exists but has no executable link, which
        is the case for kernel threads. A `` (deleted)`` suffix is dropped
        unless a file with the suffixed name really exists.
        """
        try:
            path = readlink(pid_path(self._settings, self._pid, "exe"), self._settings)
        except OSError as e:
            if e.errno in (errno.ENOENT, errno.ESRCH) and os.path.lexists(
                pid_path(self._settings, self._pid)
            ):
                self._check(require_live=True)
                return None
            self._check_for_zombie(e)
        self._check(require_live=True)

        if path.endswith(_DELETED_SUFFIX) and not os.path.exists(path):
            path = path[: -len(_DELETED_SUFFIX)]
        return path

    def memory_info(self) -> MemoryInfo:
        """Memory usage in bytes, from /proc/<pid>/statm."""
        data = self._read("statm", self._settings.stat_buffer_size)
        self._check(require_live=True)
        try:
            statm = parse_statm(data)
        except ParseFailure as e:
            raise ParseFailure(self._pid, e.msg) from e
        page_size = os.sysconf("SC_PAGE_SIZE")
        return MemoryInfo(
            rss=statm.resident * page_size,
            vms=statm.size * page_size,
            shared=statm.shared * page_size,
            text=statm.text * page_size,
            lib=statm.lib * page_size,
            data=statm.data * page_size,
            dirty=statm.dirty * page_size,
        )


def process_iter(calibration: Calibration | None = None) -> Iterator[ProcessHandle]:
    """
    Yield a handle for every process visible in procfs.

    Processes that exit, or whose stat record cannot be read, between
    listing and opening are skipped.
    """
    if calibration is None:
        calibration = default_calibration()
    for pid in pids(calibration.settings):
        try:
            yield ProcessHandle(pid, calibration=calibration)
        except (NoSuchProcess, AccessDenied):
            continue

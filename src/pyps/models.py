"""Data models for pyps."""

from dataclasses import dataclass
from enum import Enum


class ProcessStatus(str, Enum):
    """Scheduler state of a process, as reported in /proc/<pid>/stat."""

    RUNNING = "running"
    SLEEPING = "sleeping"
    DISK_SLEEP = "disk_sleep"
    STOPPED = "stopped"
    TRACING_STOP = "tracing_stop"
    ZOMBIE = "zombie"
    DEAD = "dead"
    WAKE_KILL = "wake_kill"
    WAKING = "waking"


STATE_CODES: dict[str, ProcessStatus] = {
    "R": ProcessStatus.RUNNING,
    "S": ProcessStatus.SLEEPING,
    "D": ProcessStatus.DISK_SLEEP,
    "T": ProcessStatus.STOPPED,
    "t": ProcessStatus.TRACING_STOP,
    "Z": ProcessStatus.ZOMBIE,
    "X": ProcessStatus.DEAD,
    "x": ProcessStatus.DEAD,
    "K": ProcessStatus.WAKE_KILL,
    "W": ProcessStatus.WAKING,
}

ZOMBIE_STATE = "Z"


@dataclass(slots=True, frozen=True)
class StatRecord:
    """
    Decoded /proc/<pid>/stat record.

    Fields follow the kernel's positional order after the command name.
    Never cached: every query reads a fresh one.
    """

    name: bytes
    state: str
    ppid: int
    pgrp: int
    session: int
    tty_nr: int
    tpgid: int
    flags: int
    minflt: int
    cminflt: int
    majflt: int
    cmajflt: int
    utime: int  # Clock ticks
    stime: int
    cutime: int
    cstime: int
    priority: int
    nice: int
    num_threads: int
    itrealvalue: int  # Unused since Linux 2.6.17, always 0
    starttime: int  # Clock ticks since boot


@dataclass(slots=True, frozen=True)
class StatmRecord:
    """Decoded /proc/<pid>/statm record, in pages."""

    size: int
    resident: int
    shared: int
    text: int
    lib: int
    data: int
    dirty: int


@dataclass(slots=True, frozen=True)
class IdTriple:
    """Real, effective and saved user or group ids."""

    real: int
    effective: int
    saved: int


@dataclass(slots=True, frozen=True)
class CpuTimes:
    """CPU time consumed, in seconds."""

    user: float
    system: float
    children_user: float
    children_system: float


@dataclass(slots=True, frozen=True)
class MemoryInfo:
    """Memory accounting, in bytes."""

    rss: int
    vms: int
    shared: int
    text: int
    lib: int
    data: int
    dirty: int


@dataclass(slots=True, frozen=True)
class ProcessFormat:
    """Printable description of a handle, available even after exit."""

    name: str
    pid: int
    create_time: float
    status: str  # A ProcessStatus value, "unknown" or "terminated"


@dataclass(slots=True, frozen=True)
class ProcessSnapshot:
    """Immutable snapshot of a process state."""

    pid: int
    name: str
    username: str
    status: str  # 'running', 'sleeping', 'zombie', etc.
    create_time: float
    cpu_user: float  # Seconds
    cpu_system: float
    memory_rss: int  # Bytes
    threads: int
    nice: int
    command_line: str

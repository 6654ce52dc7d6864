"""Exception hierarchy for pyps."""

import errno as errno_codes
import os


class PsError(Exception):
    """Base class for every error raised by pyps."""

    def __init__(self, pid: int | None = None, msg: str = "") -> None:
        self.pid = pid
        self.msg = msg
        super().__init__(self._render())

    def _render(self) -> str:
        details = f"pid={self.pid}" if self.pid is not None else ""
        if self.msg and details:
            return f"{self.msg} ({details})"
        return self.msg or details


class NoSuchProcess(PsError):
    """The pid does not exist, or now belongs to a different process."""

    def __init__(self, pid: int | None = None, msg: str = "") -> None:
        super().__init__(pid, msg or "process no longer exists")


class ZombieProcess(NoSuchProcess):
    """The process has exited and is waiting to be reaped by its parent."""

    def __init__(self, pid: int | None = None, msg: str = "") -> None:
        super().__init__(pid, msg or "process is a zombie")


class AccessDenied(PsError):
    """Not permitted to read the requested accounting data."""

    def __init__(self, pid: int | None = None, msg: str = "") -> None:
        super().__init__(pid, msg or "access denied")


class OutOfMemory(PsError):
    """Allocation failed while buffering procfs data."""

    def __init__(self, pid: int | None = None, msg: str = "") -> None:
        super().__init__(pid, msg or "out of memory")


class ParseFailure(PsError):
    """A kernel record did not have the expected shape."""


class TransientIOFailure(PsError):
    """Any other OS-level read error. Carries the original errno."""

    def __init__(self, pid: int | None = None, errno: int | None = None, msg: str = "") -> None:
        self.errno = errno
        if not msg and errno is not None:
            name = errno_codes.errorcode.get(errno, str(errno))
            msg = f"{name}: {os.strerror(errno)}"
        super().__init__(pid, msg or "I/O error")


class ConfigurationError(PsError):
    """Settings failed validation."""

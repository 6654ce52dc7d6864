"""
Failure triage: turn a failed procfs read into one pyps error.

This is the only place errno values are interpreted. The same ENOENT can
mean "the process is gone" or "this one file is unavailable for a process
that still exists" (kernel threads, zombies, low system pids), so a missing
file is disambiguated by probing the process directory itself.
"""

import errno
import os

from pyps.config import Settings
from pyps.errors import (
    AccessDenied,
    NoSuchProcess,
    OutOfMemory,
    PsError,
    TransientIOFailure,
)
from pyps.log import get_logger
from pyps.procfs import pid_path

logger = get_logger("pyps.triage")

_MISSING = (errno.ENOENT, errno.ESRCH)
_DENIED = (errno.EPERM, errno.EACCES)


def classify(err: BaseException, pid: int, settings: Settings) -> PsError:
    """
    Classify a read failure against a per-process path.

    Args:
        err: The ``OSError`` (or ``MemoryError``) raised by the read.
        pid: The process the path belongs to.
        settings: Used to locate the process directory.

    Returns:
        The error to raise. Never raises itself.
    """
    result = _classify(err, pid, settings)
    logger.debug(
        "read failure classified",
        pid=pid,
        error=repr(err),
        kind=type(result).__name__,
    )
    return result


def _classify(err: BaseException, pid: int, settings: Settings) -> PsError:
    if isinstance(err, MemoryError):
        return OutOfMemory(pid)
    if not isinstance(err, OSError) or err.errno is None:
        return TransientIOFailure(pid, msg=str(err))

    code = err.errno
    if code in _MISSING:
        try:
            os.lstat(pid_path(settings, pid))
        except OSError as probe:
            if probe.errno == errno.ENOENT:
                return NoSuchProcess(pid)
            if probe.errno in _DENIED:
                return AccessDenied(pid)
            return TransientIOFailure(pid, probe.errno)
        # Directory is there, the file is not: the process still exists.
        return TransientIOFailure(pid, code)
    if code in _DENIED:
        return AccessDenied(pid)
    if code == errno.ENOMEM:
        return OutOfMemory(pid)
    return TransientIOFailure(pid, code)

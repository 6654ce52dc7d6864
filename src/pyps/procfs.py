"""
Low-level procfs access: bounded reads, symlink resolution, pid listing.

Nothing in this module interprets errno. Failures surface as ``OSError``
and are classified by :mod:`pyps.triage`.
"""

import ctypes
import errno
import functools
import os
from pathlib import Path

from pyps.config import Settings
from pyps.errors import ParseFailure
from pyps.models import StatRecord
from pyps.parser import parse_stat


@functools.lru_cache(maxsize=1)
def _libc() -> ctypes.CDLL:
    libc = ctypes.CDLL(None, use_errno=True)
    libc.readlink.argtypes = [ctypes.c_char_p, ctypes.c_char_p, ctypes.c_size_t]
    libc.readlink.restype = ctypes.c_ssize_t
    return libc


def pid_path(settings: Settings, pid: int, name: str | None = None) -> Path:
    """Path of a process directory, or of a file inside it."""
    path = settings.procfs_root / str(pid)
    return path / name if name else path


def read_file(path: Path, buffer_size: int) -> bytes:
    """
    Read a whole procfs file as bytes, ``buffer_size`` bytes at a time.

    procfs files report a size of zero, so the file is read in chunks until
    EOF rather than sized up front.
    """
    chunks: list[bytes] = []
    with open(path, "rb", buffering=0) as f:
        while True:
            chunk = f.read(buffer_size)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


def read_stat(settings: Settings, pid: int) -> StatRecord:
    """
    Read and decode /proc/<pid>/stat.

    Raises:
        OSError: If the file cannot be read or is empty.
        ParseFailure: If the record is malformed.
    """
    data = read_file(pid_path(settings, pid, "stat"), settings.stat_buffer_size)
    if not data:
        raise OSError(errno.ENODATA, "empty stat record")
    if data.endswith(b"\n"):
        data = data[:-1]
    try:
        return parse_stat(data)
    except ParseFailure as e:
        raise ParseFailure(pid, e.msg) from e


def readlink(path: Path, settings: Settings) -> str:
    """
    Resolve a procfs symbolic link such as ``exe`` or ``cwd``.

    Starts with ``settings.readlink_buffer_size`` bytes. A result that fills
    the buffer exactly may be truncated, so the buffer doubles and the call
    is retried, up to ``settings.readlink_max_size``.

    The kernel can append garbage after a NUL byte in the target; the result
    is cut at the first NUL. A `` (deleted)`` suffix is left in place.

    Raises:
        OSError: The readlink errno; ENOENT for an empty target;
            ENAMETOOLONG if the target outgrows the size bound.
    """
    raw_path = os.fsencode(path)
    size = settings.readlink_buffer_size

    while True:
        buf = ctypes.create_string_buffer(size)
        n = _libc().readlink(raw_path, buf, size)
        if n == -1:
            err = ctypes.get_errno()
            raise OSError(err, os.strerror(err), str(path))
        if n == 0:
            raise OSError(errno.ENOENT, "empty link target", str(path))
        if n < size:
            break
        if size >= settings.readlink_max_size:
            raise OSError(errno.ENAMETOOLONG, os.strerror(errno.ENAMETOOLONG), str(path))
        size = min(size * 2, settings.readlink_max_size)

    target = buf.raw[:n].split(b"\0", 1)[0]
    return os.fsdecode(target)


def pids(settings: Settings) -> list[int]:
    """List the pids currently visible under the procfs root, sorted."""
    return sorted(int(name) for name in os.listdir(settings.procfs_root) if name.isdigit())

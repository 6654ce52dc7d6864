"""
Parsers for procfs accounting records.

All functions here take raw bytes and return decoded values. They do no I/O
and never look at errno; read failures are the caller's business.
"""

import errno
import os

from pyps.errors import ParseFailure
from pyps.models import IdTriple, StatmRecord, StatRecord

STAT_FIELD_COUNT = 20
STATM_FIELD_COUNT = 7

_BTIME_TOKEN = b"btime"


def parse_stat(data: bytes) -> StatRecord:
    """
    Decode a /proc/<pid>/stat record.

    The command name sits between the first ``(`` and the last ``)``; it can
    itself contain parentheses and whitespace, so the fields are only split
    after it has been cut out. The 20 fields that follow are read by
    position. Fields past the 20th are ignored.

    Args:
        data: Raw record, with or without the trailing newline.

    Returns:
        The decoded record.

    Raises:
        OSError: ENODATA if nothing follows the command name.
        ParseFailure: If the record is malformed.
    """
    left = data.find(b"(")
    right = data.rfind(b")")
    if left == -1 or right == -1 or right < left:
        raise ParseFailure(msg="cannot parse stat file: command name not found")

    name = data[left + 1 : right]
    tokens = data[right + 1 :].split()
    if not tokens:
        raise OSError(errno.ENODATA, "empty stat record")

    values: list[object] = []
    for token in tokens[:STAT_FIELD_COUNT]:
        if not values:
            # The state is a single character; anything longer is a scan error.
            if len(token) != 1:
                break
            values.append(token.decode("ascii", "replace"))
            continue
        try:
            values.append(int(token))
        except ValueError:
            break

    if len(values) != STAT_FIELD_COUNT:
        raise ParseFailure(
            msg=f"cannot parse stat file, parsed: {len(values)}/{STAT_FIELD_COUNT} fields"
        )

    return StatRecord(name, *values)


def parse_statm(data: bytes) -> StatmRecord:
    """
    Decode a /proc/<pid>/statm record into page counts.

    Raises:
        ParseFailure: If fewer than seven integers are present.
    """
    try:
        values = [int(token) for token in data.split()[:STATM_FIELD_COUNT]]
    except ValueError as e:
        raise ParseFailure(msg="cannot parse statm file") from e
    if len(values) != STATM_FIELD_COUNT:
        raise ParseFailure(
            msg=f"cannot parse statm file, parsed: {len(values)}/{STATM_FIELD_COUNT} fields"
        )
    return StatmRecord(*values)


def parse_id_triple(data: bytes, label: bytes) -> IdTriple:
    """
    Find a labeled line in /proc/<pid>/status and read three ids from it.

    Args:
        data: The whole status record.
        label: Line label including the colon, e.g. ``b"Uid:"``.

    Raises:
        ParseFailure: If the line is missing or does not start with three ints.
    """
    for line in data.splitlines():
        if not line.startswith(label):
            continue
        tokens = line[len(label) :].split()[:3]
        try:
            values = [int(token) for token in tokens]
        except ValueError as e:
            raise ParseFailure(msg="cannot read process status file") from e
        if len(values) != 3:
            raise ParseFailure(msg="cannot read process status file")
        return IdTriple(*values)

    raise ParseFailure(msg=f"cannot read process status file: no {label.decode()} line")


def split_nul_list(data: bytes) -> list[str]:
    """
    Split a cmdline or environ blob into strings, keeping order.

    Entries are NUL terminated. A process that rewrites its own command line
    (setproctitle and friends) may use spaces and drop the final NUL; in that
    case the blob is split on spaces instead.
    """
    if not data:
        return []
    sep = b"\0" if data.endswith(b"\0") else b" "
    parts = data.split(sep)
    if sep == b"\0":
        # Last entry is the empty string after the terminator.
        parts = parts[:-1]
    else:
        parts = [part for part in parts if part]
    return [os.fsdecode(part) for part in parts]


def parse_boot_time(data: bytes) -> int:
    """
    Find the ``btime`` line in /proc/stat and return it as epoch seconds.

    Raises:
        ParseFailure: If there is no parseable btime line.
    """
    for line in data.splitlines():
        tokens = line.split()
        if len(tokens) >= 2 and tokens[0] == _BTIME_TOKEN:
            try:
                return int(tokens[1])
            except ValueError as e:
                raise ParseFailure(msg="cannot parse btime in stat file") from e
    raise ParseFailure(msg="no btime line in stat file")

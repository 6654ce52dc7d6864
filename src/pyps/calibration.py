"""Boot time and clock tick calibration, computed once per process."""

import functools
import os
import threading

from pyps.config import Settings, load_settings
from pyps.errors import ParseFailure, TransientIOFailure
from pyps.log import get_logger
from pyps.parser import parse_boot_time
from pyps.procfs import read_file

logger = get_logger("pyps.calibration")


class Calibration:
    """
    Constants needed to turn kernel tick counters into wall-clock times.

    Both values are properties of the running kernel, so they are cached for
    the lifetime of the object once computed. A failed computation is not
    cached; the next call tries again.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """
        Initialize the Calibration.

        Args:
            settings: Where procfs lives. Defaults to ``load_settings()``.
        """
        self.settings = settings if settings is not None else load_settings()
        self._lock = threading.Lock()
        self._boot_time: float | None = None
        self._clock_ticks: int | None = None

    def boot_time(self) -> float:
        """System boot time in seconds since the epoch."""
        if self._boot_time is None:
            with self._lock:
                if self._boot_time is None:
                    self._boot_time = self._read_boot_time()
        return self._boot_time

    def clock_ticks(self) -> int:
        """Kernel clock ticks per second (USER_HZ)."""
        if self._clock_ticks is None:
            with self._lock:
                if self._clock_ticks is None:
                    self._clock_ticks = self._read_clock_ticks()
        return self._clock_ticks

    def creation_time(self, starttime: int) -> float:
        """Convert a stat ``starttime`` (ticks since boot) to epoch seconds."""
        return self.boot_time() + starttime / self.clock_ticks()

    def _read_boot_time(self) -> float:
        path = self.settings.procfs_root / "stat"
        try:
            btime = parse_boot_time(read_file(path, self.settings.stat_buffer_size))
        except (OSError, ParseFailure) as e:
            raise TransientIOFailure(
                errno=getattr(e, "errno", None), msg=f"cannot determine boot time: {e}"
            ) from e
        logger.debug("boot time calibrated", boot_time=btime)
        return float(btime)

    def _read_clock_ticks(self) -> int:
        if self.settings.clock_ticks is not None:
            return self.settings.clock_ticks
        try:
            ticks = os.sysconf("SC_CLK_TCK")
        except (ValueError, OSError, AttributeError) as e:
            raise TransientIOFailure(msg=f"cannot determine clock ticks: {e}") from e
        if ticks <= 0:
            raise TransientIOFailure(msg=f"invalid clock ticks: {ticks}")
        logger.debug("clock ticks calibrated", clock_ticks=ticks)
        return ticks


@functools.lru_cache(maxsize=1)
def default_calibration() -> Calibration:
    """The shared Calibration used by handles that are not given one."""
    return Calibration(load_settings())

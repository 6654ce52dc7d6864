"""Periodic process sampling for pyps."""

import threading
import time
from dataclasses import dataclass
from queue import Queue

from pyps.calibration import Calibration, default_calibration
from pyps.errors import AccessDenied, NoSuchProcess, ParseFailure, PsError, TransientIOFailure
from pyps.handle import ProcessHandle
from pyps.log import get_logger
from pyps.models import ProcessSnapshot
from pyps.procfs import pids

logger = get_logger("pyps.monitor")


@dataclass(slots=True)
class MonitorSnapshot:
    """One sampling pass over every process."""

    boot_time: float
    uptime_seconds: float
    processes: list[ProcessSnapshot]


class ProcessMonitor:
    """
    Samples all processes in a background thread.

    Runs in a separate daemon thread and pushes updates to a thread-safe Queue.
    Processes that exit, turn into zombies, or cannot be read during a pass
    are left out of that pass's snapshot.
    """

    def __init__(
        self,
        update_queue: Queue[MonitorSnapshot],
        poll_rate: float = 2.0,
        calibration: Calibration | None = None,
    ) -> None:
        """
        Initialize the ProcessMonitor.

        Args:
            update_queue: Thread-safe queue to push updates to.
            poll_rate: How often to sample (in seconds). Default 2.0s.
            calibration: Shared calibration for every handle opened.
        """
        self._queue = update_queue
        self._poll_rate = poll_rate
        self._calibration = calibration if calibration is not None else default_calibration()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="ProcessMonitor",
        )
        self._thread.start()
        logger.info("monitor started", poll_rate=self._poll_rate)

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
            logger.info("monitor stopped")

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                self._queue.put(self.collect_snapshot())
            except Exception:
                # A bad pass must not end the loop; try again next tick
                logger.warning("sampling pass failed", exc_info=True)

            # Wait for poll_rate seconds or until stop is requested
            self._stop_event.wait(timeout=self._poll_rate)

    def collect_snapshot(self) -> MonitorSnapshot:
        """Take one sample of the whole system."""
        boot_time = self._calibration.boot_time()
        return MonitorSnapshot(
            boot_time=boot_time,
            uptime_seconds=time.time() - boot_time,
            processes=self._collect_processes(),
        )

    def _collect_processes(self) -> list[ProcessSnapshot]:
        """Snapshot every readable, live process."""
        processes: list[ProcessSnapshot] = []
        for pid in pids(self._calibration.settings):
            try:
                handle = ProcessHandle(pid, calibration=self._calibration)
                processes.append(snapshot_process(handle))
            except (NoSuchProcess, AccessDenied):
                # Exited mid-pass (or became a zombie), or not ours to read
                continue
            except (ParseFailure, TransientIOFailure) as e:
                logger.debug("process skipped", pid=pid, error=str(e))
                continue
        return processes


def snapshot_process(handle: ProcessHandle) -> ProcessSnapshot:
    """
    Collect one ProcessSnapshot from a handle.

    A process whose command line is unreadable falls back to its name. A
    state code outside ProcessStatus is reported as "unknown".

    Raises:
        NoSuchProcess: If the process exited (ZombieProcess included).
        AccessDenied: If its accounting records are not readable.
    """
    name = handle.name()
    try:
        status = handle.status().value
    except ParseFailure:
        # State codes newer than the known set, e.g. "I" for idle kernel threads
        status = "unknown"
    cpu = handle.cpu_times()
    memory = handle.memory_info()
    threads = handle.num_threads()
    nice = handle.nice()

    try:
        cmdline = handle.cmdline()
    except NoSuchProcess:
        raise
    except PsError:
        cmdline = []

    return ProcessSnapshot(
        pid=handle.pid,
        name=name,
        username=handle.username(),
        status=status,
        create_time=handle.create_time,
        cpu_user=cpu.user,
        cpu_system=cpu.system,
        memory_rss=memory.rss,
        threads=threads,
        nice=nice,
        command_line=" ".join(cmdline) if cmdline else name,
    )

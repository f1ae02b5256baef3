"""Process tracking for pysysinfo."""

import logging
from collections.abc import Callable, Hashable, Iterable, Iterator, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from types import MappingProxyType

from pysysinfo.cpu import CpuUsageTracker
from pysysinfo.host import HostPlatform
from pysysinfo.models import ProcessMetadata

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProcessEntry:
    """A tracked process, updated in place on every refresh."""

    pid: int
    handle: Hashable = field(repr=False)
    name: str = ""
    cmd: list[str] = field(default_factory=list)
    exe: str = ""
    status: str = "?"
    username: str = ""
    parent: int | None = None
    memory: int = 0  # KiB
    virtual_memory: int = 0  # KiB
    threads: int = 0
    nice: int = 0
    start_time: float = 0.0
    cpu_time: float = 0.0  # User + system seconds
    last_computed: float | None = None
    _tracker: CpuUsageTracker = field(default_factory=CpuUsageTracker, repr=False)

    @property
    def cpu_usage(self) -> float:
        """Get the usage percentage of all cores since the previous computation."""
        return self._tracker.usage

    @property
    def command_line(self) -> str:
        """Get the command line, falling back to the name."""
        return " ".join(self.cmd) if self.cmd else self.name

    def update(self, metadata: ProcessMetadata) -> None:
        """Copy fresh metadata into the entry."""
        self.name = metadata.name
        self.cmd = metadata.command_line
        self.exe = metadata.exe
        self.status = metadata.status
        self.username = metadata.username
        self.parent = metadata.parent
        self.memory = metadata.memory_rss >> 10
        self.virtual_memory = metadata.memory_vms >> 10
        self.threads = metadata.threads
        self.nice = metadata.nice
        self.start_time = metadata.start_time
        self.cpu_time = metadata.cpu_time

    def compute_cpu_usage(self, now: float) -> float:
        """Recompute CPU usage from the CPU time delta since the last computation."""
        usage = self._tracker.update(self.cpu_time, now)
        # Unchanged when the tracker kept its baseline
        self.last_computed = self._tracker.sampled_at
        return usage


class ProcessRegistry(Mapping[int, ProcessEntry]):
    """
    Processes keyed by pid.

    Entries are added when a refresh finds a live untracked pid, updated in place
    while the process runs, and evicted as soon as a liveness check fails.
    """

    def __init__(self, host: HostPlatform, processor_count: int, workers: int = 1) -> None:
        """
        Initialize the ProcessRegistry.

        Args:
            host: Source of process handles, liveness and metadata.
            processor_count: Logical cores; process CPU time is spread over them.
            workers: Threads used by refresh_all. 1 runs sequentially.
        """
        self._host = host
        self._processor_count = max(1, processor_count)
        self._workers = max(1, workers)
        self._entries: dict[int, ProcessEntry] = {}

    def __getitem__(self, pid: int) -> ProcessEntry:
        return self._entries[pid]

    def __iter__(self) -> Iterator[int]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> Mapping[int, ProcessEntry]:
        """Get a read-only view of the tracked processes."""
        return MappingProxyType(self._entries)

    def refresh_one(self, pid: int, compute_cpu: bool = True, now: float | None = None) -> bool:
        """
        Refresh a single process, tracking it if it is new.

        Returns:
            True if the process exists and was updated or added, False if it could
            not be found or just died.
        """
        if now is None:
            now = self._host.monotonic()
        entry = self._entries.get(pid)
        if entry is not None:
            if self._update(entry, now, compute_cpu):
                return True
            self._evict(pid)
            return False
        return self._add(pid, now)

    def refresh_all(self, pids: Iterable[int], now: float | None = None) -> None:
        """
        Re-evaluate every tracked process once and track newly listed pids.

        All processes are sampled against the same instant.
        """
        if now is None:
            now = self._host.monotonic()
        listed = set(pids)
        tracked = list(self._entries.values())

        def update(entry: ProcessEntry) -> bool:
            return self._update(entry, now, True)

        for entry, alive in zip(tracked, self._map(update, tracked)):
            if not alive:
                self._evict(entry.pid)

        for pid in sorted(listed - self._entries.keys()):
            self._add(pid, now)

    def _map(self, func: Callable[[ProcessEntry], bool], entries: list[ProcessEntry]) -> list[bool]:
        """Run func over entries, fanning out when several workers are allowed."""
        if self._workers == 1 or len(entries) < 2:
            return [func(entry) for entry in entries]
        with ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix="ProcessRegistry") as pool:
            return list(pool.map(func, entries))

    def _update(self, entry: ProcessEntry, now: float, compute_cpu: bool) -> bool:
        """Check and refresh an existing entry; False means it is gone."""
        if not self._host.process_still_active(entry.handle):
            return False
        metadata = self._host.process_metadata(entry.handle)
        if metadata is None:
            return False
        entry.update(metadata)
        if compute_cpu:
            entry.compute_cpu_usage(now)
        return True

    def _add(self, pid: int, now: float) -> bool:
        handle = self._host.open_process(pid)
        if handle is None:
            return False
        if not self._host.process_still_active(handle):
            return False
        metadata = self._host.process_metadata(handle)
        if metadata is None:
            return False
        entry = ProcessEntry(
            pid=pid,
            handle=handle,
            _tracker=CpuUsageTracker(ticks_per_second=1.0, processors=self._processor_count),
        )
        entry.update(metadata)
        entry.compute_cpu_usage(now)
        self._entries[pid] = entry
        logger.debug("Tracking process %d (%s)", pid, entry.name)
        return True

    def _evict(self, pid: int) -> None:
        entry = self._entries.pop(pid, None)
        if entry is not None:
            logger.debug("Process %d (%s) is gone", pid, entry.name)

"""Host platform services for pysysinfo."""

import logging
import platform
import re
import time
from abc import ABC, abstractmethod
from collections.abc import Hashable, Sequence
from typing import Any

import psutil

from pysysinfo.counters import CounterSource
from pysysinfo.cpu import TICKS_PER_SECOND
from pysysinfo.models import (
    Component,
    Disk,
    LoadAvg,
    MemoryInfo,
    NetworkData,
    ProcessMetadata,
    User,
)

logger = logging.getLogger(__name__)

# Flat ``index, name`` table of the counters the psutil backend serves.
COUNTER_TABLE: tuple[str, ...] = (
    "2", "System",
    "4", "Memory",
    "6", "% Processor Time",
    "238", "Processor",
    "1482", "% Idle Time",
)

# psutil.cpu_times() fields that do not count as busy time.
IDLE_FIELDS = ("idle", "iowait")

_COUNTER_PATH = re.compile(r"^\\(?P<object>[^\\(]+)\((?P<instance>[^)]+)\)\\(?P<counter>.+)$")

_PROCESS_ATTRS = [
    "pid",
    "name",
    "username",
    "status",
    "memory_info",
    "num_threads",
    "nice",
    "cmdline",
    "exe",
    "ppid",
    "create_time",
    "cpu_times",
]

_DEAD_STATUSES = (psutil.STATUS_ZOMBIE, psutil.STATUS_DEAD)


class HostPlatform(ABC):
    """
    Point-in-time queries the refresh engine consumes.

    Implementations return already-validated values and never raise for
    processes that vanished; they report None or False instead.
    """

    @abstractmethod
    def counter_table(self) -> Sequence[str] | None:
        """Get the flat ``index, english_name`` counter table."""

    @abstractmethod
    def localized_counter_name(self, index: int) -> str | None:
        """Get the localized name of a counter index."""

    @abstractmethod
    def open_counters(self) -> CounterSource | None:
        """Open the counter subsystem, or None if it is unavailable."""

    @abstractmethod
    def processor_topology(self) -> tuple[int, str, str]:
        """Get the logical processor count, vendor id and brand."""

    @abstractmethod
    def memory(self) -> MemoryInfo:
        """Get physical memory and swap totals."""

    @abstractmethod
    def monotonic(self) -> float:
        """Get a monotonic clock reading in seconds."""

    @abstractmethod
    def wall_clock(self) -> float:
        """Get seconds since the epoch."""

    @abstractmethod
    def uptime(self) -> int:
        """Get seconds since boot."""

    @abstractmethod
    def pids(self) -> list[int]:
        """List the pids of running processes."""

    @abstractmethod
    def open_process(self, pid: int) -> Hashable | None:
        """Get an identity handle for a process, or None if there is none."""

    @abstractmethod
    def process_still_active(self, handle: Hashable) -> bool:
        """Check whether the process behind a handle is still running."""

    @abstractmethod
    def process_metadata(self, handle: Hashable) -> ProcessMetadata | None:
        """Read a process's metadata, or None if it is gone."""

    def load_average(self) -> LoadAvg:
        return LoadAvg(0.0, 0.0, 0.0)

    def disks(self) -> list[Disk]:
        return []

    def components(self) -> list[Component]:
        return []

    def users(self) -> list[User]:
        return []

    def networks(self) -> dict[str, NetworkData]:
        return {}


def busy_ticks(times: Any) -> int:
    """Convert a psutil cpu_times tuple into cumulative busy ticks."""
    total = sum(times)
    # guest time is already accounted in user/nice on Linux
    total -= getattr(times, "guest", 0.0) + getattr(times, "guest_nice", 0.0)
    idle = sum(getattr(times, name, 0.0) for name in IDLE_FIELDS)
    return int(max(0.0, total - idle) * TICKS_PER_SECOND)


class PsutilCounterSource(CounterSource):
    """Processor busy-time counters backed by psutil.cpu_times()."""

    def __init__(self, object_name: str, counter_name: str, total_instance: str = "_Total") -> None:
        self._object_name = object_name
        self._counter_name = counter_name
        self._total_instance = total_instance
        self._per_cpu: list[int] = []

    def subscribe(self, path: str) -> Hashable | None:
        match = _COUNTER_PATH.match(path)
        if match is None:
            return None
        if match["object"] != self._object_name or match["counter"] != self._counter_name:
            return None
        instance = match["instance"]
        if instance == self._total_instance:
            return self._total_instance
        if not instance.isdigit() or int(instance) >= (psutil.cpu_count() or 1):
            return None
        return int(instance)

    def collect(self) -> None:
        self._per_cpu = [busy_ticks(times) for times in psutil.cpu_times(percpu=True)]

    def query(self, handle: Hashable) -> int:
        if not self._per_cpu:
            return 0
        if handle == self._total_instance:
            # The aggregate counter is the mean over all cores
            return sum(self._per_cpu) // len(self._per_cpu)
        return self._per_cpu[handle]


def _read_cpuinfo() -> tuple[str, str]:
    vendor_id, brand = "", ""
    try:
        with open("/proc/cpuinfo", encoding="utf-8") as cpuinfo:
            for line in cpuinfo:
                key, _, value = line.partition(":")
                key = key.strip()
                if key == "vendor_id" and not vendor_id:
                    vendor_id = value.strip()
                elif key == "model name" and not brand:
                    brand = value.strip()
                if vendor_id and brand:
                    break
    except OSError:
        pass  # Not Linux
    return vendor_id, brand


class PsutilPlatform(HostPlatform):
    """HostPlatform implementation backed by psutil."""

    def __init__(
        self,
        object_name: str = "Processor",
        counter_name: str = "% Processor Time",
        total_instance: str = "_Total",
    ) -> None:
        self._object_name = object_name
        self._counter_name = counter_name
        self._total_instance = total_instance
        self._boot_time = psutil.boot_time()

    def counter_table(self) -> Sequence[str] | None:
        return COUNTER_TABLE

    def localized_counter_name(self, index: int) -> str | None:
        # psutil only speaks English
        names = dict(zip(COUNTER_TABLE[::2], COUNTER_TABLE[1::2]))
        return names.get(str(index))

    def open_counters(self) -> CounterSource | None:
        try:
            psutil.cpu_times(percpu=True)
        except (OSError, psutil.Error) as exc:
            logger.warning("Cannot read CPU times: %s", exc)
            return None
        return PsutilCounterSource(self._object_name, self._counter_name, self._total_instance)

    def processor_topology(self) -> tuple[int, str, str]:
        vendor_id, brand = _read_cpuinfo()
        if not brand:
            brand = platform.processor()
        return psutil.cpu_count(logical=True) or 1, vendor_id, brand

    def memory(self) -> MemoryInfo:
        mem = psutil.virtual_memory()
        swap = psutil.swap_memory()
        return MemoryInfo(
            total=mem.total,
            free=mem.available,
            swap_total=swap.total,
            swap_free=swap.free,
        )

    def monotonic(self) -> float:
        return time.monotonic()

    def wall_clock(self) -> float:
        return time.time()

    def uptime(self) -> int:
        return max(0, int(time.time() - self._boot_time))

    def pids(self) -> list[int]:
        return psutil.pids()

    def open_process(self, pid: int) -> psutil.Process | None:
        try:
            return psutil.Process(pid)
        except (psutil.NoSuchProcess, psutil.AccessDenied, ValueError):
            return None

    def process_still_active(self, handle: psutil.Process) -> bool:
        try:
            # is_running() also detects pid reuse through the creation time
            return handle.is_running() and handle.status() not in _DEAD_STATUSES
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            return False

    def process_metadata(self, handle: psutil.Process) -> ProcessMetadata | None:
        try:
            info = handle.as_dict(attrs=_PROCESS_ATTRS, ad_value=None)
        except (psutil.NoSuchProcess, psutil.ZombieProcess):
            return None

        mem_info = info.get("memory_info")
        cpu_times = info.get("cpu_times")
        return ProcessMetadata(
            pid=handle.pid,
            name=info.get("name") or "",
            username=info.get("username") or "",
            status=info.get("status") or "?",
            memory_rss=mem_info.rss if mem_info else 0,
            memory_vms=mem_info.vms if mem_info else 0,
            threads=info.get("num_threads") or 0,
            nice=info.get("nice") or 0,
            command_line=info.get("cmdline") or [],
            exe=info.get("exe") or "",
            parent=info.get("ppid"),
            start_time=info.get("create_time") or 0.0,
            cpu_time=cpu_times.user + cpu_times.system if cpu_times else 0.0,
        )

    def load_average(self) -> LoadAvg:
        return LoadAvg(*psutil.getloadavg())

    def disks(self) -> list[Disk]:
        disks = []
        for partition in psutil.disk_partitions(all=False):
            try:
                usage = psutil.disk_usage(partition.mountpoint)
            except OSError:
                continue  # Unmounted or inaccessible
            disks.append(
                Disk(
                    name=partition.device,
                    mount_point=partition.mountpoint,
                    file_system=partition.fstype,
                    total_space=usage.total,
                    available_space=usage.free,
                )
            )
        return disks

    def components(self) -> list[Component]:
        sensors = getattr(psutil, "sensors_temperatures", None)
        if sensors is None:
            return []
        components = []
        for chip, entries in sensors().items():
            for entry in entries:
                components.append(
                    Component(
                        label=f"{chip} {entry.label}".strip(),
                        temperature=entry.current,
                        max=entry.high,
                        critical=entry.critical,
                    )
                )
        return components

    def users(self) -> list[User]:
        return [
            User(
                name=user.name,
                terminal=user.terminal or "",
                host=user.host or "",
                started=user.started,
            )
            for user in psutil.users()
        ]

    def networks(self) -> dict[str, NetworkData]:
        counters = psutil.net_io_counters(pernic=True)
        return {
            name: NetworkData(
                interface=name,
                received=io.bytes_recv,
                transmitted=io.bytes_sent,
                packets_received=io.packets_recv,
                packets_transmitted=io.packets_sent,
                errors_in=io.errin,
                errors_out=io.errout,
            )
            for name, io in counters.items()
        }

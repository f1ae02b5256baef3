"""Data models for pysysinfo."""

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class ProcessMetadata:
    """Immutable point-in-time view of a process, as reported by the host."""

    pid: int
    name: str
    username: str
    status: str  # 'running', 'sleeping', 'zombie', etc.
    memory_rss: int  # Bytes
    memory_vms: int  # Bytes
    threads: int
    nice: int
    command_line: list[str]
    exe: str
    parent: int | None
    start_time: float  # Seconds since the epoch
    cpu_time: float  # User + system seconds consumed so far


@dataclass(slots=True, frozen=True)
class MemoryInfo:
    """Physical memory and swap, in bytes."""

    total: int
    free: int
    swap_total: int
    swap_free: int


@dataclass(slots=True, frozen=True)
class LoadAvg:
    """Load average over 1, 5 and 15 minutes."""

    one: float
    five: float
    fifteen: float


@dataclass(slots=True, frozen=True)
class Disk:
    """A mounted file system."""

    name: str
    mount_point: str
    file_system: str
    total_space: int  # Bytes
    available_space: int  # Bytes


@dataclass(slots=True, frozen=True)
class Component:
    """A temperature sensor."""

    label: str
    temperature: float
    max: float | None
    critical: float | None


@dataclass(slots=True, frozen=True)
class User:
    """A logged-in user session."""

    name: str
    terminal: str
    host: str
    started: float


@dataclass(slots=True, frozen=True)
class NetworkData:
    """Cumulative traffic counters of one network interface."""

    interface: str
    received: int
    transmitted: int
    packets_received: int
    packets_transmitted: int
    errors_in: int
    errors_out: int

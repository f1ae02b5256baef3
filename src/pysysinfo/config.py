"""Configuration for pysysinfo."""

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace

MIN_INTERVAL = 0.1


@dataclass(slots=True, frozen=True)
class RefreshKind:
    """Which metric categories a refresh covers."""

    cpu: bool = False
    memory: bool = False
    processes: bool = False
    disks: bool = False
    components: bool = False
    users: bool = False
    networks: bool = False

    @classmethod
    def new(cls) -> "RefreshKind":
        """Nothing is refreshed."""
        return cls()

    @classmethod
    def everything(cls) -> "RefreshKind":
        """Every category is refreshed."""
        return cls(
            cpu=True,
            memory=True,
            processes=True,
            disks=True,
            components=True,
            users=True,
            networks=True,
        )

    def with_cpu(self) -> "RefreshKind":
        return replace(self, cpu=True)

    def with_memory(self) -> "RefreshKind":
        return replace(self, memory=True)

    def with_processes(self) -> "RefreshKind":
        return replace(self, processes=True)

    def with_disks(self) -> "RefreshKind":
        return replace(self, disks=True)

    def with_components(self) -> "RefreshKind":
        return replace(self, components=True)

    def with_users(self) -> "RefreshKind":
        return replace(self, users=True)

    def with_networks(self) -> "RefreshKind":
        return replace(self, networks=True)


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    value = environ.get(name)
    if value is None or value == "":
        return default
    return float(value)


@dataclass(slots=True, frozen=True)
class SamplerConfig:
    """
    Settings of the refresh engine.

    Attributes:
        process_workers: Threads used to re-evaluate tracked processes during a
            bulk refresh. 1 runs sequentially, 0 uses one per logical core.
        counter_category: Canonical English name of the processor counter object.
        counter_name: Canonical English name of the busy-time counter.
        total_instance: Instance name of the aggregate processor.
    """

    process_workers: int = 1
    counter_category: str = "Processor"
    counter_name: str = "% Processor Time"
    total_instance: str = "_Total"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "SamplerConfig":
        """Build a config from PYSYSINFO_* environment variables."""
        environ = os.environ if environ is None else environ
        workers = environ.get("PYSYSINFO_PROCESS_WORKERS")
        if workers is None or workers == "":
            return cls()
        return cls(process_workers=max(0, int(workers)))

    def resolved_workers(self) -> int:
        """Get the effective worker count."""
        if self.process_workers == 0:
            return os.cpu_count() or 1
        return self.process_workers


@dataclass(slots=True, frozen=True)
class RefreshIntervals:
    """Per-category refresh cadence of the viewer, in seconds."""

    cpu: float = 1.0
    memory: float = 1.0
    processes: float = 5.0

    def __post_init__(self) -> None:
        # Frozen dataclass: clamp through object.__setattr__
        for name in ("cpu", "memory", "processes"):
            object.__setattr__(self, name, max(MIN_INTERVAL, getattr(self, name)))

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "RefreshIntervals":
        """Build intervals from PYSYSINFO_*_INTERVAL environment variables."""
        environ = os.environ if environ is None else environ
        default = cls()
        return cls(
            cpu=_env_float(environ, "PYSYSINFO_CPU_INTERVAL", default.cpu),
            memory=_env_float(environ, "PYSYSINFO_MEMORY_INTERVAL", default.memory),
            processes=_env_float(environ, "PYSYSINFO_PROCESS_INTERVAL", default.processes),
        )

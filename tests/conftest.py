"""Shared fixtures: an in-memory host with a controllable clock."""

from collections.abc import Hashable, Sequence
from dataclasses import dataclass, field

import pytest

from pysysinfo.config import SamplerConfig
from pysysinfo.counters import CounterSource
from pysysinfo.cpu import TICKS_PER_SECOND
from pysysinfo.host import COUNTER_TABLE, HostPlatform
from pysysinfo.models import LoadAvg, MemoryInfo, ProcessMetadata


class FakeCounterSource(CounterSource):
    """Counters whose busy ticks are set directly by the test."""

    def __init__(self, cpus: int) -> None:
        self.ticks: dict[str, int] = {"_Total": 0} | {str(i): 0 for i in range(cpus)}
        self.subscribed: list[str] = []
        self.collections = 0
        self._batch: dict[str, int] = {}

    def subscribe(self, path: str) -> Hashable | None:
        instance = path[path.index("(") + 1 : path.index(")")]
        if instance not in self.ticks:
            return None
        self.subscribed.append(path)
        return instance

    def collect(self) -> None:
        self.collections += 1
        self._batch = dict(self.ticks)

    def query(self, handle: Hashable) -> int:
        return self._batch[handle]

    def busy(self, instance: str, seconds: float) -> None:
        """Add busy time to a counter instance."""
        self.ticks[instance] += int(seconds * TICKS_PER_SECOND)


@dataclass
class FakeProcess:
    pid: int
    name: str = "proc"
    cpu_time: float = 0.0
    alive: bool = True
    zombie: bool = False  # Exited but still listed and readable
    memory_rss: int = 4096 * 1024


@dataclass
class FakeHost(HostPlatform):
    """HostPlatform serving scripted values."""

    cpus: int = 2
    table: Sequence[str] | None = COUNTER_TABLE
    counters_available: bool = True
    now: float = 1000.0
    wall: float = 1_700_000_000.0
    up: int = 3600
    mem: MemoryInfo = field(
        default_factory=lambda: MemoryInfo(
            total=16 * 1024**3,
            free=6 * 1024**3 + 123,
            swap_total=2 * 1024**3,
            swap_free=1024**3,
        )
    )
    processes: dict[int, FakeProcess] = field(default_factory=dict)
    source: FakeCounterSource | None = None
    liveness_checks: int = 0

    def __post_init__(self) -> None:
        if self.counters_available:
            self.source = FakeCounterSource(self.cpus)

    def counter_table(self) -> Sequence[str] | None:
        return self.table

    def localized_counter_name(self, index: int) -> str | None:
        names = dict(zip(COUNTER_TABLE[::2], COUNTER_TABLE[1::2]))
        return names.get(str(index))

    def open_counters(self) -> CounterSource | None:
        return self.source

    def processor_topology(self) -> tuple[int, str, str]:
        return self.cpus, "GenuineTest", "Test CPU @ 1.00GHz"

    def memory(self) -> MemoryInfo:
        return self.mem

    def monotonic(self) -> float:
        return self.now

    def wall_clock(self) -> float:
        return self.wall

    def uptime(self) -> int:
        return self.up

    def pids(self) -> list[int]:
        return [pid for pid, proc in list(self.processes.items()) if proc.alive]

    def open_process(self, pid: int) -> Hashable | None:
        proc = self.processes.get(pid)
        if proc is None or not proc.alive:
            return None
        return pid

    def process_still_active(self, handle: Hashable) -> bool:
        self.liveness_checks += 1
        proc = self.processes.get(handle)
        return proc is not None and proc.alive and not proc.zombie

    def process_metadata(self, handle: Hashable) -> ProcessMetadata | None:
        proc = self.processes.get(handle)
        if proc is None or not proc.alive:
            return None
        return ProcessMetadata(
            pid=proc.pid,
            name=proc.name,
            username="tester",
            status="running",
            memory_rss=proc.memory_rss,
            memory_vms=proc.memory_rss * 2,
            threads=1,
            nice=0,
            command_line=[f"/usr/bin/{proc.name}", "--flag"],
            exe=f"/usr/bin/{proc.name}",
            parent=1,
            start_time=self.wall - 10,
            cpu_time=proc.cpu_time,
        )

    def load_average(self) -> LoadAvg:
        return LoadAvg(1.0, 0.5, 0.25)

    def spawn(self, pid: int, name: str = "proc") -> FakeProcess:
        self.processes[pid] = FakeProcess(pid=pid, name=name)
        return self.processes[pid]

    def kill(self, pid: int) -> None:
        self.processes[pid].alive = False

    def zombify(self, pid: int) -> None:
        self.processes[pid].zombie = True

    def tick(self, seconds: float) -> None:
        self.now += seconds
        self.wall += seconds
        self.up += int(seconds)


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def config() -> SamplerConfig:
    return SamplerConfig()


@pytest.fixture
def make_host() -> type[FakeHost]:
    return FakeHost

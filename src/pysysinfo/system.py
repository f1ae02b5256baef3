"""Snapshot of system state for pysysinfo."""

import logging
import threading
from collections.abc import Mapping

from pysysinfo.catalog import CounterCatalog
from pysysinfo.config import RefreshKind, SamplerConfig
from pysysinfo.counters import CounterError, CounterQuery
from pysysinfo.cpu import Processor, new_processors
from pysysinfo.host import HostPlatform, PsutilPlatform
from pysysinfo.models import Component, Disk, LoadAvg, NetworkData, User
from pysysinfo.process import ProcessEntry, ProcessRegistry

logger = logging.getLogger(__name__)


class System:
    """
    In-memory snapshot of the host, refreshed on demand.

    Every ``refresh_*`` method covers one category and never touches another, so
    callers pick the cadence of each. Refreshes run on the calling thread and are
    serialized by a per-instance lock.
    """

    def __init__(
        self,
        refreshes: RefreshKind | None = None,
        host: HostPlatform | None = None,
        config: SamplerConfig | None = None,
    ) -> None:
        """
        Initialize the System.

        Args:
            refreshes: Categories refreshed once at construction. Default: all.
            host: Platform services. Default: psutil.
            config: Engine settings. Default: read from the environment.
        """
        self._config = config if config is not None else SamplerConfig.from_env()
        self._host = host if host is not None else PsutilPlatform(
            self._config.counter_category,
            self._config.counter_name,
            self._config.total_instance,
        )
        self._lock = threading.RLock()

        count, vendor_id, brand = self._host.processor_topology()
        self._global_processor, self._processors = new_processors(count, vendor_id, brand)
        self._registry = ProcessRegistry(
            self._host,
            processor_count=count,
            workers=self._config.resolved_workers(),
        )

        self._mem_total = 0
        self._mem_free = 0
        self._swap_total = 0
        self._swap_free = 0
        self._disks: list[Disk] = []
        self._components: list[Component] = []
        self._users: list[User] = []
        self._networks: dict[str, NetworkData] = {}
        self._boot_time = max(0, int(self._host.wall_clock()) - self._host.uptime())

        self._query = self._open_query()
        if self._query is not None:
            self._subscribe_processors(self._query)

        self.refresh_specifics(refreshes if refreshes is not None else RefreshKind.everything())

    def _open_query(self) -> CounterQuery | None:
        try:
            source = self._host.open_counters()
        except CounterError as exc:
            logger.warning("Failed to open counters: %s", exc)
            source = None
        return CounterQuery.open(source)

    def _subscribe_processors(self, query: CounterQuery) -> None:
        """Subscribe the busy-time counter of every processor, best effort."""
        table = self._host.counter_table()
        if table is not None:
            catalog = CounterCatalog(table, self._host.localized_counter_name)
        else:
            logger.info("No counter name table, using English counter names")
            catalog = CounterCatalog.english(
                (self._config.counter_category, self._config.counter_name)
            )
        category = catalog.translate(self._config.counter_category)
        if category is None:
            logger.warning("Failed to get %r translation", self._config.counter_category)
            return
        counter = catalog.translate(self._config.counter_name)
        if counter is None:
            logger.warning("Failed to get %r translation", self._config.counter_name)
            return

        self._global_processor.key = query.add_counter(
            f"\\{category}({self._config.total_instance})\\{counter}",
            "tot_0",
        )
        for pos, processor in enumerate(self._processors):
            processor.key = query.add_counter(f"\\{category}({pos})\\{counter}", f"{pos}_0")

    def refresh_specifics(self, refreshes: RefreshKind) -> None:
        """Refresh the given categories."""
        if refreshes.cpu:
            self.refresh_cpu()
        if refreshes.memory:
            self.refresh_memory()
        if refreshes.processes:
            self.refresh_processes_list()
        if refreshes.disks:
            self.refresh_disks_list()
        if refreshes.components:
            self.refresh_components_list()
        if refreshes.users:
            self.refresh_users_list()
        if refreshes.networks:
            self.refresh_networks_list()

    def refresh_all(self) -> None:
        """Refresh every category."""
        self.refresh_specifics(RefreshKind.everything())

    def refresh_cpu(self) -> None:
        """Recompute the usage of every processor from fresh counter values."""
        if self._query is None:
            return
        with self._lock:
            self._query.refresh()
            now = self._host.monotonic()
            for processor in (self._global_processor, *self._processors):
                if processor.key is not None:
                    processor.set_cpu_usage(self._query.get(processor.key), now)

    def refresh_memory(self) -> None:
        """Read memory and swap totals."""
        with self._lock:
            mem = self._host.memory()
            self._mem_total = mem.total
            self._mem_free = mem.free
            self._swap_total = mem.swap_total
            self._swap_free = mem.swap_free

    def refresh_processes_list(self) -> None:
        """Re-evaluate tracked processes and track new ones."""
        with self._lock:
            self._registry.refresh_all(self._host.pids(), now=self._host.monotonic())

    def refresh_process(self, pid: int) -> bool:
        """
        Refresh one process.

        Returns:
            False if the process does not exist or just died; it is no longer
            tracked in either case.
        """
        with self._lock:
            return self._registry.refresh_one(pid)

    def refresh_disks_list(self) -> None:
        with self._lock:
            self._disks = self._host.disks()

    def refresh_components_list(self) -> None:
        with self._lock:
            self._components = self._host.components()

    def refresh_users_list(self) -> None:
        with self._lock:
            self._users = self._host.users()

    def refresh_networks_list(self) -> None:
        with self._lock:
            self._networks = self._host.networks()

    @property
    def global_processor(self) -> Processor:
        """Get the aggregate of all processors."""
        return self._global_processor

    @property
    def processors(self) -> tuple[Processor, ...]:
        """Get the per-core processors."""
        return tuple(self._processors)

    @property
    def processes(self) -> Mapping[int, ProcessEntry]:
        """
        Get the tracked processes keyed by pid.

        The mapping is a copy taken under the lock; later refreshes do not add or
        remove its keys. The entries themselves keep updating in place.
        """
        with self._lock:
            return dict(self._registry.entries())

    def process(self, pid: int) -> ProcessEntry | None:
        with self._lock:
            return self._registry.get(pid)

    # Memory is reported in KiB

    @property
    def total_memory(self) -> int:
        return self._mem_total >> 10

    @property
    def free_memory(self) -> int:
        return self._mem_free >> 10

    @property
    def used_memory(self) -> int:
        return self.total_memory - self.free_memory

    @property
    def total_swap(self) -> int:
        return self._swap_total >> 10

    @property
    def free_swap(self) -> int:
        return self._swap_free >> 10

    @property
    def used_swap(self) -> int:
        return self.total_swap - self.free_swap

    @property
    def uptime(self) -> int:
        """Get seconds since boot, read live."""
        return self._host.uptime()

    @property
    def boot_time(self) -> int:
        """Get the boot time in seconds since the epoch, fixed at construction."""
        return self._boot_time

    @property
    def load_average(self) -> LoadAvg:
        return self._host.load_average()

    @property
    def disks(self) -> tuple[Disk, ...]:
        return tuple(self._disks)

    @property
    def components(self) -> tuple[Component, ...]:
        return tuple(self._components)

    @property
    def users(self) -> tuple[User, ...]:
        return tuple(self._users)

    @property
    def networks(self) -> Mapping[str, NetworkData]:
        return dict(self._networks)

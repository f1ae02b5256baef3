"""CPU usage computation for pysysinfo."""

from dataclasses import dataclass, field

from pysysinfo.counters import CounterKey

# Busy-time counters tick in 100 nanosecond units.
TICKS_PER_SECOND = 10_000_000


class CpuUsageTracker:
    """
    Turns a cumulative busy-time series into a usage percentage.

    The tracker keeps the previous sample and the instant it was taken; usage is
    the busy-time delta over the wall-clock delta, spread over ``processors``
    cores and clamped to [0, 100].
    """

    __slots__ = ("_ticks_per_second", "_processors", "_previous", "_previous_time", "_usage")

    def __init__(self, ticks_per_second: float = TICKS_PER_SECOND, processors: int = 1) -> None:
        self._ticks_per_second = ticks_per_second
        self._processors = max(1, processors)
        self._previous: float | None = None
        self._previous_time = 0.0
        self._usage = 0.0

    @property
    def usage(self) -> float:
        """Get the usage computed by the last update."""
        return self._usage

    @property
    def sampled_at(self) -> float | None:
        """Get the instant of the current baseline, None before the first sample."""
        if self._previous is None:
            return None
        return self._previous_time

    def update(self, sample: float, now: float) -> float:
        """
        Feed a new cumulative sample taken at ``now`` (monotonic seconds).

        Returns:
            The usage percentage; 0.0 on the first sample.
        """
        if self._previous is None:
            self._previous = sample
            self._previous_time = now
            self._usage = 0.0
            return self._usage

        elapsed = now - self._previous_time
        if elapsed <= 0:
            return self._usage

        busy_seconds = (sample - self._previous) / self._ticks_per_second
        usage = busy_seconds / elapsed / self._processors * 100.0
        self._usage = min(100.0, max(0.0, usage))
        self._previous = sample
        self._previous_time = now
        return self._usage


@dataclass(slots=True)
class Processor:
    """A logical processor, or the aggregate of all of them."""

    name: str
    vendor_id: str = ""
    brand: str = ""
    key: CounterKey | None = None
    _tracker: CpuUsageTracker = field(default_factory=CpuUsageTracker, repr=False)

    @property
    def cpu_usage(self) -> float:
        """Get the usage percentage since the previous CPU refresh."""
        return self._tracker.usage

    def set_cpu_usage(self, busy_ticks: int, now: float) -> float:
        """Feed the cumulative busy ticks read at ``now``."""
        return self._tracker.update(busy_ticks, now)


def new_processors(count: int, vendor_id: str, brand: str) -> tuple[Processor, list[Processor]]:
    """Create the aggregate processor and ``count`` per-core processors."""
    global_processor = Processor("Total CPU", vendor_id, brand)
    processors = [Processor(f"CPU {i + 1}", vendor_id, brand) for i in range(count)]
    return global_processor, processors

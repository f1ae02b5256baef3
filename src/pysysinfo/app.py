"""pysysinfo - Textual viewer driving the System snapshot."""

import logging
import os
from collections.abc import Callable
from enum import Enum

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.css.query import NoMatches
from textual.logging import TextualHandler
from textual.widgets import DataTable, Footer, Static
from textual.worker import get_current_worker

from pysysinfo.config import RefreshIntervals, RefreshKind
from pysysinfo.process import ProcessEntry
from pysysinfo.system import System

logger = logging.getLogger(__name__)


class SortKey(Enum):
    """Sort keys for the process table."""

    CPU = "cpu"
    MEM = "mem"
    PID = "pid"
    USER = "user"


def format_kib(size: int) -> str:
    """Format KiB as human-readable string."""
    for unit in ["K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "K" else f"{size:5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def format_uptime(uptime: int) -> str:
    """Format seconds since boot."""
    days = uptime // 86400
    hours = (uptime % 86400) // 3600
    minutes = (uptime % 3600) // 60
    seconds = uptime % 60
    if days > 0:
        return f"{days} days, {hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def _bar(percent: float, color: str) -> str:
    length = min(int(percent / 5), 20)  # Cap at 20 chars
    return f"[{color}]█[/{color}]" * length + "[dim]░[/dim]" * (20 - length)


class HeaderStats(Static):
    """Header widget showing CPU and memory statistics."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 5;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__(*args, **kwargs)
        self._cpu_percents: list[float] = []
        self._memory_total: int = 0
        self._memory_used: int = 0
        self._swap_total: int = 0
        self._swap_used: int = 0
        self._load_avg: tuple[float, float, float] = (0.0, 0.0, 0.0)
        self._uptime: int = 0

    def compose(self) -> ComposeResult:
        """Compose the header stats layout."""
        yield Horizontal(
            Static(self._get_cpu_info(), id="cpu-info"),
            Static(self._get_mem_info(), id="mem-info"),
        )

    def update_cpu(self, system: System) -> None:
        """Take per-core usage from the system."""
        self._cpu_percents = [processor.cpu_usage for processor in system.processors]
        self._refresh_display()

    def update_memory(self, system: System) -> None:
        """Take memory, swap, load and uptime from the system."""
        self._memory_total = system.total_memory
        self._memory_used = system.used_memory
        self._swap_total = system.total_swap
        self._swap_used = system.used_swap
        load = system.load_average
        self._load_avg = (load.one, load.five, load.fifteen)
        self._uptime = system.uptime
        self._refresh_display()

    def _refresh_display(self) -> None:
        """Refresh the display with current data."""
        try:
            cpu_info = self.query_one("#cpu-info", Static)
            mem_info = self.query_one("#mem-info", Static)
        except NoMatches:
            return  # Not mounted yet
        cpu_info.update(self._get_cpu_info())
        mem_info.update(self._get_mem_info())

    def _get_cpu_info(self) -> str:
        """Get CPU info display."""
        if not self._cpu_percents:
            return "Loading CPU info..."
        lines = []
        for i, usage in enumerate(self._cpu_percents):
            # Use escaped brackets for the bar container
            lines.append(f"CPU{i:<2} \\[{_bar(usage, 'green')}] {usage:5.1f}%")
        return "\n".join(lines)

    def _get_mem_info(self) -> str:
        """Get memory info display."""
        if self._memory_total == 0:
            return "Loading memory info..."

        mem_percent = self._memory_used / self._memory_total * 100
        swap_percent = self._swap_used / self._swap_total * 100 if self._swap_total > 0 else 0.0
        gib = 1024**2
        load_avg = self._load_avg

        return (
            f"Mem\\[{_bar(mem_percent, 'cyan')}] "
            f"{self._memory_used / gib:.1f}G/{self._memory_total / gib:.1f}G\n"
            f"Swp\\[{_bar(swap_percent, 'yellow')}] "
            f"{self._swap_used / gib:.1f}G/{self._swap_total / gib:.1f}G\n"
            f"Load average: {load_avg[0]:.2f} {load_avg[1]:.2f} {load_avg[2]:.2f}\n"
            f"Uptime: {format_uptime(self._uptime)}"
        )


class ProcessTable(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._current_pids: set[int] = set()
        self._sort_key: SortKey = SortKey.CPU
        self._sort_reverse: bool = True  # Default: descending for CPU

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        keys = list(SortKey)
        current_index = keys.index(self._sort_key)
        self._sort_key = keys[(current_index + 1) % len(keys)]
        self._sort_reverse = self._sort_key in (SortKey.CPU, SortKey.MEM)
        return self._sort_key

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("USER", key="user", width=10)
        table.add_column("NI", key="nice", width=4)
        table.add_column("S", key="status", width=9)
        table.add_column("CPU%", key="cpu", width=8)
        table.add_column("MEM%", key="mem", width=8)
        table.add_column("RES", key="rss", width=8)
        table.add_column("THR", key="threads", width=5)
        table.add_column("Command", key="command")

    def update_processes(self, processes: list[ProcessEntry], total_memory: int) -> None:
        """
        Update the process table with the tracked processes.

        Existing rows are updated cell by cell, rows of evicted processes removed.
        """
        table = self.query_one("#process-table", DataTable)
        sorted_processes = self._sort_processes(processes)
        new_pids = {proc.pid for proc in sorted_processes}

        for pid in self._current_pids - new_pids:
            table.remove_row(str(pid))

        for proc in sorted_processes:
            row = self._format_row(proc, total_memory)
            row_key = str(proc.pid)
            if proc.pid in self._current_pids:
                for column, value in zip(_COLUMNS, row):
                    table.update_cell(row_key, column, value)
            else:
                table.add_row(*row, key=row_key)

        self._current_pids = new_pids

    def _sort_processes(self, processes: list[ProcessEntry]) -> list[ProcessEntry]:
        """Sort processes based on the current sort key."""
        key_func = {
            SortKey.CPU: lambda p: p.cpu_usage,
            SortKey.MEM: lambda p: p.memory,
            SortKey.PID: lambda p: p.pid,
            SortKey.USER: lambda p: p.username.lower(),
        }
        return sorted(processes, key=key_func[self._sort_key], reverse=self._sort_reverse)

    @staticmethod
    def _format_row(proc: ProcessEntry, total_memory: int) -> tuple[str, ...]:
        mem_percent = proc.memory / total_memory * 100 if total_memory > 0 else 0.0
        return (
            str(proc.pid),
            proc.username[:10],
            str(proc.nice),
            proc.status,
            f"{proc.cpu_usage:5.1f}",
            f"{mem_percent:5.1f}",
            format_kib(proc.memory),
            str(proc.threads),
            proc.command_line[:50],
        )


_COLUMNS = ("pid", "user", "nice", "status", "cpu", "mem", "rss", "threads", "command")


class SysinfoApp(App):
    """Main pysysinfo application."""

    TITLE = "pysysinfo"
    SUB_TITLE = "Host metrics sampler"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
        height: auto;
        min-height: 6;
    }

    Horizontal {
        height: auto;
    }

    #cpu-info {
        width: 1fr;
        padding-right: 2;
    }

    #mem-info {
        width: 1fr;
        padding-left: 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f6", "sort", "Sort"),
    ]

    def __init__(self, system: System | None = None, intervals: RefreshIntervals | None = None) -> None:
        """
        Initialize the SysinfoApp.

        Args:
            system: Snapshot to display. Default: a psutil-backed System.
            intervals: Refresh cadence per category. Default: from the environment.
        """
        super().__init__()
        self._system = system if system is not None else System(RefreshKind.new().with_cpu().with_memory())
        self._intervals = intervals if intervals is not None else RefreshIntervals.from_env()

    @property
    def system(self) -> System:
        return self._system

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(id="header-stats")
        yield ProcessTable()
        yield Footer()

    def on_mount(self) -> None:
        """Take a first sample and schedule the per-category refreshes."""
        self._refresh_cpu()
        self._refresh_memory()
        self._refresh_processes()
        self.set_interval(self._intervals.cpu, self._refresh_cpu)
        self.set_interval(self._intervals.memory, self._refresh_memory)
        self.set_interval(self._intervals.processes, self._refresh_processes)

    def _refresh_cpu(self) -> None:
        self._run_refresh(self._system.refresh_cpu, self._show_cpu, "cpu")

    def _refresh_memory(self) -> None:
        self._run_refresh(self._system.refresh_memory, self._show_memory, "memory")

    def _refresh_processes(self) -> None:
        self._run_refresh(self._system.refresh_processes_list, self._show_processes, "processes")

    def _run_refresh(self, refresh: Callable[[], None], show: Callable[[], None], group: str) -> None:
        """
        Refresh one category on a worker thread, then redraw on the event loop.

        Workers only contend on the System lock, never on the event loop.
        """

        def run() -> None:
            refresh()
            if not get_current_worker().is_cancelled:
                self.call_from_thread(show)

        self.run_worker(run, name=f"refresh-{group}", group=group, exclusive=True, thread=True)

    def _show_cpu(self) -> None:
        self.query_one("#header-stats", HeaderStats).update_cpu(self._system)

    def _show_memory(self) -> None:
        self.query_one("#header-stats", HeaderStats).update_memory(self._system)

    def _show_processes(self) -> None:
        self.query_one(ProcessTable).update_processes(
            list(self._system.processes.values()),
            self._system.total_memory,
        )

    def action_sort(self) -> None:
        """Handle sort action - cycle through sort keys."""
        process_table = self.query_one(ProcessTable)
        new_sort_key = process_table.cycle_sort()
        self.notify(f"Sort: {new_sort_key.value.upper()}")


def configure_logging(level: str | None = None) -> None:
    """Route log records to the Textual devtools console."""
    level = level or os.environ.get("PYSYSINFO_LOG_LEVEL", "WARNING")
    logging.basicConfig(level=level.upper(), handlers=[TextualHandler()], force=True)


def main() -> None:
    """Entry point for pysysinfo application."""
    configure_logging()
    logger.info("Starting pysysinfo")
    app = SysinfoApp()
    app.run()


if __name__ == "__main__":
    main()

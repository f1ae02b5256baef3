"""Tests for pysysinfo configuration."""

import pytest

from pysysinfo.config import MIN_INTERVAL, RefreshIntervals, RefreshKind, SamplerConfig


class TestRefreshKind:
    """Tests for RefreshKind."""

    def test_new_refreshes_nothing(self):
        kind = RefreshKind.new()
        assert not any((kind.cpu, kind.memory, kind.processes, kind.disks))

    def test_everything(self):
        kind = RefreshKind.everything()
        assert all(
            (kind.cpu, kind.memory, kind.processes, kind.disks, kind.components, kind.users, kind.networks)
        )

    def test_builders_chain(self):
        """Test with_* builders return new values."""
        base = RefreshKind.new()
        kind = base.with_cpu().with_processes()

        assert kind.cpu and kind.processes
        assert not kind.memory
        assert base == RefreshKind.new()


class TestSamplerConfig:
    """Tests for SamplerConfig."""

    def test_defaults(self):
        config = SamplerConfig()

        assert config.process_workers == 1
        assert config.counter_category == "Processor"
        assert config.counter_name == "% Processor Time"
        assert config.total_instance == "_Total"

    def test_from_env(self):
        config = SamplerConfig.from_env({"PYSYSINFO_PROCESS_WORKERS": "8"})
        assert config.process_workers == 8
        assert config.resolved_workers() == 8

    def test_from_env_empty(self):
        assert SamplerConfig.from_env({}) == SamplerConfig()

    def test_zero_workers_uses_cpu_count(self, monkeypatch):
        monkeypatch.setattr("os.cpu_count", lambda: 6)
        assert SamplerConfig(process_workers=0).resolved_workers() == 6

    def test_from_env_invalid(self):
        with pytest.raises(ValueError):
            SamplerConfig.from_env({"PYSYSINFO_PROCESS_WORKERS": "many"})


class TestRefreshIntervals:
    """Tests for RefreshIntervals."""

    def test_defaults(self):
        intervals = RefreshIntervals()
        assert (intervals.cpu, intervals.memory, intervals.processes) == (1.0, 1.0, 5.0)

    def test_minimum(self):
        """Test intervals are clamped to a minimum value."""
        intervals = RefreshIntervals(cpu=0.01, memory=0.0, processes=-1.0)
        assert intervals.cpu == intervals.memory == intervals.processes == MIN_INTERVAL

    def test_from_env(self):
        intervals = RefreshIntervals.from_env(
            {"PYSYSINFO_CPU_INTERVAL": "0.5", "PYSYSINFO_PROCESS_INTERVAL": "10"}
        )
        assert intervals.cpu == 0.5
        assert intervals.memory == 1.0
        assert intervals.processes == 10.0

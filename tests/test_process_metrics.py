from __future__ import annotations

import sys
from types import SimpleNamespace

import psutil
import pytest

from scrapekit.metrics import CollectedMetric
from scrapekit.metrics.process import register_process_metrics


class FakeProcess:
    def create_time(self):
        return 1_700_000_000.5

    def cpu_times(self):
        return SimpleNamespace(user=0.42, system=3141.59)

    def memory_info(self):
        return SimpleNamespace(vms=1048576, rss=44 * 4096)

    def num_threads(self):
        return 3


class FakeUnixProcess(FakeProcess):
    def num_fds(self):
        return 2

    def rlimit(self, which):
        return {psutil.RLIMIT_NOFILE: (1536, 1_000_000)}.get(which, (psutil.RLIM_INFINITY, psutil.RLIM_INFINITY))


def _by_name(created):
    return {m.name: m for m in created}


def test_core_metrics_registered_and_read(registry):
    created = _by_name(register_process_metrics(registry, process=FakeProcess()))
    assert isinstance(created['process_cpu_seconds_total'], CollectedMetric)
    assert created['process_cpu_seconds_total'].kind == 'counter'
    assert created['process_cpu_seconds_total'].get(mode="user") == 0.42
    assert created['process_cpu_seconds_total'].get(mode="system") == 3141.59
    assert created['process_virtual_memory_bytes'].get() == 1048576
    assert created['process_resident_memory_bytes'].get() == 44 * 4096
    assert created['process_threads'].get() == 3
    assert registry.get_sample_value('process_start_time_seconds') == 1_700_000_000.5


def test_unsupported_sources_are_not_registered(registry):
    created = _by_name(register_process_metrics(registry, process=FakeProcess()))
    assert 'process_open_fds' not in created
    assert 'process_max_fds' not in created
    assert registry.get_sample_value('process_open_fds') is None


@pytest.mark.skipif(not sys.platform.startswith('linux'), reason='rlimit is Linux-only in psutil')
def test_fd_and_rlimit_metrics(registry):
    created = _by_name(register_process_metrics(registry, process=FakeUnixProcess()))
    assert created['process_open_fds'].get() == 2
    assert created['process_max_fds'].get() == 1536
    assert created['process_virtual_memory_max_bytes'].get() == float('inf')
    assert registry.get_sample_value('process_max_fds') == 1536.0


def test_real_process_scrapes_cleanly(registry):
    register_process_metrics(registry)
    assert registry.get_sample_value('process_resident_memory_bytes') > 0
    assert registry.get_sample_value('process_cpu_seconds_total', {'mode': 'user'}) >= 0

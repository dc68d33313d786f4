"""Standard process metrics as scrape-time collectors.

Registers the recommended Prometheus ``process_*`` metrics that the current
platform can supply, each as a `CollectedMetric` reading from psutil on every
scrape. Metrics whose source is unavailable (no fd counting on Windows, no
rlimit outside Linux) are simply not registered.
"""
from __future__ import annotations

import logging

import psutil  # type: ignore
from prometheus_client import CollectorRegistry, Gauge

from scrapekit.metrics.collected import CollectedMetric
from scrapekit.metrics.labels import LabelSet

_log = logging.getLogger(__name__)

_NO_LABELS = LabelSet()


def _unlimited(value: int) -> float:
    return float("inf") if value == getattr(psutil, "RLIM_INFINITY", -1) else float(value)


def register_process_metrics(
    registry: CollectorRegistry,
    *,
    logger: logging.Logger | None = None,
    process: psutil.Process | None = None,
) -> list[CollectedMetric]:
    """Register process metrics in ``registry``; returns the collected metrics created."""
    log = logger or _log
    proc = process or psutil.Process()
    created: list[CollectedMetric] = []

    def _add(name: str, docstring: str, fn, *, labels=(), kind: str = "gauge") -> None:
        created.append(CollectedMetric(name, docstring, labels=labels, kind=kind,
                                       registry=registry, logger=log, collector=fn))

    start = Gauge("process_start_time_seconds",
                  "Start time of the process since unix epoch in seconds", registry=registry)
    start.set(proc.create_time())

    def _cpu():
        t = proc.cpu_times()
        return {LabelSet(mode="user"): t.user, LabelSet(mode="system"): t.system}

    _add("process_cpu_seconds_total", "Total user and system CPU time spent in seconds",
         _cpu, labels=["mode"], kind="counter")
    _add("process_virtual_memory_bytes", "Virtual memory size in bytes",
         lambda: {_NO_LABELS: proc.memory_info().vms})
    _add("process_resident_memory_bytes", "Resident memory size in bytes",
         lambda: {_NO_LABELS: proc.memory_info().rss})
    _add("process_threads", "Number of OS threads in the process",
         lambda: {_NO_LABELS: proc.num_threads()})

    if hasattr(proc, "num_fds"):
        _add("process_open_fds", "Number of open file descriptors",
             lambda: {_NO_LABELS: proc.num_fds()})
    else:
        log.debug("process_open_fds unavailable on this platform")

    if hasattr(proc, "rlimit") and hasattr(psutil, "RLIMIT_NOFILE"):
        _add("process_max_fds", "Maximum number of open file descriptors",
             lambda: {_NO_LABELS: _unlimited(proc.rlimit(psutil.RLIMIT_NOFILE)[0])})
        if hasattr(psutil, "RLIMIT_AS"):
            _add("process_virtual_memory_max_bytes", "Maximum amount of virtual memory available in bytes",
                 lambda: {_NO_LABELS: _unlimited(proc.rlimit(psutil.RLIMIT_AS)[0])})
    else:
        log.debug("rlimit-based process metrics unavailable on this platform")

    return created


__all__ = ["register_process_metrics"]

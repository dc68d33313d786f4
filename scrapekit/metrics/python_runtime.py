"""Interpreter statistics as scrape-time collectors.

``python_gc_generation_<stat>{generation}``: one metric per key of the dicts returned by
`gc.get_stats()` (collections, collected, uncollectable), plus
``python_gc_generation_objects_tracked{generation}`` from `gc.get_count()`.

``python_vm_<stat>``: dimensionless interpreter statistics (threads, allocated
blocks, recursion limit, switch interval).
"""
from __future__ import annotations

import gc
import logging
import sys
import threading
from collections.abc import Callable

from prometheus_client import CollectorRegistry

from scrapekit.metrics.collected import CollectedMetric
from scrapekit.metrics.labels import LabelSet

_log = logging.getLogger(__name__)

VM_STATS: dict[str, tuple[str, Callable[[], float]]] = {
    "active_threads": ("Number of live threading.Thread objects", threading.active_count),
    "allocated_blocks": ("Memory blocks currently allocated by the interpreter", sys.getallocatedblocks),
    "recursion_limit": ("Maximum depth of the interpreter stack", sys.getrecursionlimit),
    "switch_interval_seconds": ("Thread switch interval in seconds", sys.getswitchinterval),
}


def _gc_stat(key: str):
    def _collect():
        return {LabelSet(generation=str(gen)): stats[key] for gen, stats in enumerate(gc.get_stats())}
    return _collect


def _vm_stat(fn: Callable[[], float]):
    def _collect():
        return {LabelSet(): fn()}
    return _collect


def _gc_tracked():
    return {LabelSet(generation=str(gen)): count for gen, count in enumerate(gc.get_count())}


def register_gc_metrics(registry: CollectorRegistry, *, logger: logging.Logger | None = None) -> list[CollectedMetric]:
    log = logger or _log
    created = [
        CollectedMetric(f"python_gc_generation_{key}", f"Python GC statistic {key}", labels=["generation"],
                        registry=registry, logger=log, collector=_gc_stat(key))
        for key in sorted(gc.get_stats()[0])
    ]
    created.append(CollectedMetric("python_gc_generation_objects_tracked",
                                   "Objects tracked by the GC since the last collection of each generation",
                                   labels=["generation"], registry=registry, logger=log, collector=_gc_tracked))
    return created


def register_vm_metrics(registry: CollectorRegistry, *, logger: logging.Logger | None = None) -> list[CollectedMetric]:
    log = logger or _log
    created = []
    for key, (doc, fn) in VM_STATS.items():
        created.append(CollectedMetric(f"python_vm_{key}", doc, registry=registry, logger=log,
                                       collector=_vm_stat(fn)))
    return created


__all__ = ["VM_STATS", "register_gc_metrics", "register_vm_metrics"]

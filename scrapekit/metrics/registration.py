"""All-or-nothing registration of a group of collectors."""
from __future__ import annotations

from prometheus_client import CollectorRegistry
from prometheus_client.registry import Collector


def register_all(registry: CollectorRegistry, *collectors: Collector) -> None:
    """Register ``collectors`` in order, or none of them.

    If any registration fails (usually a duplicated name), the ones already
    registered are unregistered again before the error propagates, so the
    caller can retry with corrected arguments.
    """
    done: list[Collector] = []
    try:
        for c in collectors:
            registry.register(c)
            done.append(c)
    except Exception:
        for c in reversed(done):
            registry.unregister(c)
        raise


__all__ = ["register_all"]

"""Removal of individual time series.

Labelled metrics accumulate one series per label combination they have ever
seen. When the set of valid combinations shrinks (a tracked resource is
deprovisioned, a queue is deleted) the stale series should go too:

    remove_series(queue_depth_gauge, queue="orders-old")

Removing a series that was never recorded is a no-op.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from scrapekit.errors import SeriesRemovalError
from scrapekit.metrics.labels import LabelSetValidator, label_set_from

logger = logging.getLogger(__name__)


@runtime_checkable
class RemovableMetric(Protocol):
    """A metric whose series store supports removal.

    prometheus_client's Counter, Gauge, Histogram, Summary, Info and Enum all
    satisfy this.
    """

    _labelnames: tuple[str, ...]

    def remove(self, *labelvalues: Any) -> None: ...


def remove_series(metric: RemovableMetric, labels: Mapping[str, Any] | None = None, /, **kwargs: Any) -> bool:
    """Remove the series for one label-set from ``metric``.

    Returns True when a series was removed, False when none existed. The
    label-set must name exactly the metric's labels (`InvalidLabelSetError`
    otherwise); unlabelled metrics raise `SeriesRemovalError`.
    """
    if not isinstance(metric, RemovableMetric):
        raise SeriesRemovalError(f"{metric!r} does not support series removal")
    labelnames = tuple(metric._labelnames)
    if not labelnames:
        raise SeriesRemovalError(f"{metric!r} has no labels, so it has no series to remove")
    validator = LabelSetValidator(labelnames)
    label_set = validator.validate(label_set_from(labels, kwargs))
    key = validator.values_for(label_set)

    present = key in getattr(metric, "_metrics", {})
    try:
        metric.remove(*key)
    except KeyError:
        return False
    if present:
        logger.debug("Removed series %s from %r", dict(label_set), metric)
    return present


__all__ = ["RemovableMetric", "remove_series"]

"""scrapekit: scrape-time collectors and request instrumentation for prometheus_client."""
from __future__ import annotations

from .errors import (
    AlreadyRunningError,
    InvalidLabelSetError,
    MissingWorkError,
    ScrapekitError,
    UsageError,
)
from .metrics import CollectedMetric, LabelSet, Request, remove_series
from .version import __version__

__all__ = [
    "__version__",
    "AlreadyRunningError",
    "CollectedMetric",
    "InvalidLabelSetError",
    "LabelSet",
    "MissingWorkError",
    "Request",
    "ScrapekitError",
    "UsageError",
    "remove_series",
]

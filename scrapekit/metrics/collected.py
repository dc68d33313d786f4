"""Metrics whose values are computed at scrape time.

The usual way to instrument with prometheus_client is to create metrics at
startup and mutate them as the program runs. Sometimes the program never
touches the values you want to export (counts of some external resource,
numbers read from the OS). Polling those from a background thread works, but
it brings stale data and thread lifecycle management along with it.

`CollectedMetric` instead runs a computation on every scrape and exports
whatever label-sets and values it returns:

    CollectedMetric(
        "queue_depth", "Messages waiting per queue",
        labels=["queue"], registry=registry,
        collector=lambda: {LabelSet(queue=q.name): q.depth() for q in queues},
    )

The computation *must* return a mapping of label-set to value. If it raises,
returns something that is not a mapping, or returns a label-set that does not
match the declared labels (or the same label-set twice, e.g. once as a
`LabelSet` and once as pairs), the metric reports nothing for that scrape, an
error is logged, and ``<name>_collection_errors_total{class=...}`` is
incremented. A failing computation never breaks the scrape.

Performance & concurrency: the computation runs on every scrape, inside the
scrape, and scrapes may arrive in parallel. Keep it cheap and thread-safe
(preferably read-only); nothing here serialises calls to it.
"""
from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from prometheus_client import CollectorRegistry, Counter
from prometheus_client.core import (
    CounterMetricFamily,
    GaugeMetricFamily,
    HistogramMetricFamily,
    SummaryMetricFamily,
)
from prometheus_client.registry import Collector

from scrapekit.errors import InvalidLabelSetError, UnknownMetricKindError, UsageError, kind_of
from scrapekit.metrics.labels import LabelSet, LabelSetValidator, label_set_from, validate_metric_name
from scrapekit.metrics.registration import register_all

_log = logging.getLogger(__name__)

KINDS = ("gauge", "counter", "histogram", "summary")
NOT_A_MAPPING = "NotAMappingError"


@dataclass(frozen=True)
class HistogramValue:
    """Value of one histogram series: cumulative ``(le, count)`` buckets ending at ``+Inf``."""
    buckets: Sequence[tuple[str, float]]
    sum: float


@dataclass(frozen=True)
class SummaryValue:
    count: float
    sum: float


_FAMILIES = {
    "gauge": GaugeMetricFamily,
    "counter": CounterMetricFamily,
    "histogram": HistogramMetricFamily,
    "summary": SummaryMetricFamily,
}


def _wants_metric(fn: Callable[..., Any]) -> bool:
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        return True
    params = [
        p for p in sig.parameters.values()
        if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD, p.VAR_POSITIONAL)
    ]
    return bool(params)


class CollectedMetric(Collector):
    """A metric populated by running ``collector`` at scrape time.

    Parameters
    ----------
    name : str
        Metric name; must follow the Prometheus naming rules.
    docstring : str
        Help text for the metric.
    labels : iterable of str
        Label names every returned label-set must carry, exactly.
    kind : str
        One of ``gauge`` (default), ``counter``, ``histogram``, ``summary``.
        Counters exported this way are only as monotonic as the data source
        behind them. Histogram and summary series must be returned as
        `HistogramValue` / `SummaryValue`.
    registry : CollectorRegistry
        Where this metric and its ``<name>_collection_errors_total`` counter
        are registered.
    logger : logging.Logger, optional
        Receives collection failures. Defaults to a child of this module's
        logger named after the metric.
    collector : callable
        Called once per `values()` call, either with no arguments or with
        this metric.
    """

    def __init__(
        self,
        name: str,
        docstring: str,
        *,
        labels: Iterable[str] = (),
        kind: str = "gauge",
        registry: CollectorRegistry,
        logger: logging.Logger | None = None,
        collector: Callable[..., Any],
    ) -> None:
        validate_metric_name(name)
        if not isinstance(docstring, str) or not docstring.strip():
            raise UsageError(f"docstring for {name} must be a non-empty string")
        if kind not in KINDS:
            raise UnknownMetricKindError(f"kind must be one of {', '.join(KINDS)} (got {kind!r})")
        if not callable(collector):
            raise UsageError(f"collector for {name} must be callable")

        self.name = name
        self.docstring = docstring
        self.kind = kind
        self._validator = LabelSetValidator(labels)
        self._collector = collector
        self._pass_self = _wants_metric(collector)
        self._logger = logger or _log.getChild(name)

        self._errors = Counter(
            f"{name}_collection_errors_total",
            f"Errors encountered while collecting for {name}",
            ["class"],
            registry=None,
        )
        register_all(registry, self._errors, self)

    @property
    def labels(self) -> tuple[str, ...]:
        return self._validator.expected

    def get(self, labels: Mapping[str, Any] | None = None, /, **kwargs: Any) -> Any:
        """Return the current value for one label-set, or None if absent.

        The label-set is validated before the computation runs; a mismatch
        raises `InvalidLabelSetError` rather than reporting absence.
        """
        label_set = self._validator.validate(label_set_from(labels, kwargs))
        return self.values().get(label_set)

    def values(self) -> dict[LabelSet, Any]:
        """Run the computation once and return its label-set to value map.

        Returns ``{}`` (never a partial map, never an exception) when the
        computation fails in any way.
        """
        try:
            results = self._collector(self) if self._pass_self else self._collector()
        except Exception as exc:  # noqa: BLE001 collection failures are contained here
            self._record_failure(kind_of(exc), "Exception in collection: %s (%s)", exc, kind_of(exc), exc_info=True)
            return {}

        if not isinstance(results, Mapping):
            self._record_failure(NOT_A_MAPPING, "Collector did not return a mapping, got %r", results)
            return {}

        try:
            values: dict[LabelSet, Any] = {}
            for k, v in results.items():
                label_set = self._validator.validate(k)
                if label_set in values:
                    raise InvalidLabelSetError(f"label-set {dict(label_set)!r} returned more than once")
                values[label_set] = v
            return values
        except Exception as exc:  # noqa: BLE001
            self._record_failure(kind_of(exc), "Invalid label-set in collection: %s (%s)", exc, kind_of(exc))
            return {}

    def _record_failure(self, kind: str, msg: str, *args: Any, exc_info: bool = False) -> None:
        self._logger.error("CollectedMetric(%s) " + msg, self.name, *args, exc_info=exc_info)
        self._errors.labels(**{"class": kind}).inc()

    def _family(self):
        return _FAMILIES[self.kind](self.name, self.docstring, labels=list(self.labels))

    def describe(self):
        return [self._family()]

    def collect(self):
        family = self._family()
        try:
            for label_set, value in self.values().items():
                label_values = list(self._validator.values_for(label_set))
                if self.kind == "histogram":
                    family.add_metric(label_values, [(str(le), float(c)) for le, c in value.buckets], float(value.sum))
                elif self.kind == "summary":
                    family.add_metric(label_values, float(value.count), float(value.sum))
                else:
                    family.add_metric(label_values, float(value))
        except Exception as exc:  # noqa: BLE001 a bad value must not break the scrape
            self._record_failure(kind_of(exc), "Unexportable value in collection: %s (%s)", exc, kind_of(exc))
            family = self._family()
        yield family

    def __repr__(self) -> str:
        return f"CollectedMetric({self.name!r}, kind={self.kind!r}, labels={list(self.labels)!r})"


__all__ = [
    "CollectedMetric",
    "HistogramValue",
    "SummaryValue",
    "KINDS",
    "NOT_A_MAPPING",
]

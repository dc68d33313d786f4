"""Consistent accounting around a unit of work.

A `Request` owns four metrics for one logical operation:

  * ``<name>_requests_total``            attempts (base labels)
  * ``<name>_exceptions_total``          failures (base labels + ``class``)
  * ``<name>_request_duration_seconds``  durations of successful calls
                                         (base labels + duration labels)
  * ``<name>_in_progress_count``         calls currently executing (base labels)

Every bracketed call increments attempts and in-progress up front, then
records either one duration observation (success) or one failure (raise),
never both and never neither, and always returns in-progress to its previous
value.

    fetch = Request("fetch", registry=registry, labels=["source"], duration_labels=["status"])

    def work(labels):
        resp = client.get(url)
        labels["status"] = str(resp.status_code)
        return resp

    resp = fetch.measure({"source": "upstream"}, work)

The label dict handed to the work belongs to that call alone. It starts as a
copy of the base labels; whatever it holds when the work returns (the work's
keys win over the base labels) is the label-set of the duration observation.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from timeit import default_timer
from typing import Any, TypeVar

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

from scrapekit.errors import MissingWorkError, ReservedLabelError, kind_of
from scrapekit.metrics.labels import LabelSetValidator, validate_metric_name
from scrapekit.metrics.registration import register_all

logger = logging.getLogger(__name__)

T = TypeVar("T")

FAILURE_LABEL = "class"
BUCKET_LABEL = "le"


class Request:
    def __init__(
        self,
        name: str,
        *,
        registry: CollectorRegistry,
        labels: Iterable[str] = (),
        duration_labels: Iterable[str] | None = None,
        buckets: Iterable[float] | None = None,
    ) -> None:
        validate_metric_name(name)
        self.name = name
        self._validator = LabelSetValidator(labels)
        base = self._validator.expected
        if FAILURE_LABEL in base:
            raise ReservedLabelError(f"label {FAILURE_LABEL!r} is reserved for {name}_exceptions_total")
        extra = [n for n in (duration_labels or ()) if n not in base]
        self._duration_validator = LabelSetValidator(list(base) + extra)
        if BUCKET_LABEL in self._duration_validator.expected:
            raise ReservedLabelError(f"label {BUCKET_LABEL!r} is reserved for {name}_request_duration_seconds buckets")

        # Registered only once all four are built; see register_all.
        self._requests = Counter(
            f"{name}_requests_total",
            f"Number of {name} requests",
            list(base),
            registry=None,
        )
        self._exceptions = Counter(
            f"{name}_exceptions_total",
            f"Number of exceptions encountered while processing {name} requests",
            list(base) + [FAILURE_LABEL],
            registry=None,
        )
        histogram_kwargs: dict[str, Any] = {}
        if buckets is not None:
            histogram_kwargs["buckets"] = tuple(buckets)
        self._durations = Histogram(
            f"{name}_request_duration_seconds",
            f"Time taken to process successful {name} requests",
            list(self._duration_validator.expected),
            registry=None,
            **histogram_kwargs,
        )
        self._in_progress = Gauge(
            f"{name}_in_progress_count",
            f"Number of {name} requests currently in progress",
            list(base),
            registry=None,
        )
        register_all(registry, self._requests, self._exceptions, self._durations, self._in_progress)
        logger.debug("Request(%s) registered with labels=%s duration_labels=%s",
                     name, list(base), list(self._duration_validator.expected))

    @property
    def labels(self) -> tuple[str, ...]:
        return self._validator.expected

    @property
    def duration_labels(self) -> tuple[str, ...]:
        return self._duration_validator.expected

    def _child(self, metric, label_set: Mapping[str, str]):
        if not label_set:
            return metric
        return metric.labels(**label_set)

    @contextmanager
    def tracking(self, labels: Mapping[str, Any] | None = None) -> Iterator[dict[str, str]]:
        """Bracket the body of a ``with`` block.

        Yields the mutable duration label dict for the block to amend.
        """
        base = self._validator.validate(labels)
        self._child(self._requests, base).inc()
        in_progress = self._child(self._in_progress, base)
        in_progress.inc()
        duration_labels: dict[str, str] = dict(base)
        start = default_timer()
        try:
            yield duration_labels
            elapsed = max(default_timer() - start, 0.0)
            final = self._duration_validator.validate({**base, **duration_labels})
            self._child(self._durations, final).observe(elapsed)
        except BaseException as exc:
            self._child(self._exceptions, {**base, FAILURE_LABEL: kind_of(exc)}).inc()
            raise
        finally:
            in_progress.dec()

    def measure(self, labels: Mapping[str, Any] | None = None, work: Callable[[dict[str, str]], T] | None = None) -> T:
        """Run ``work(duration_labels)`` inside the accounting bracket.

        Returns whatever ``work`` returns and re-raises whatever it raises.
        Omitting ``work`` raises `MissingWorkError` before any metric moves.
        """
        if work is None:
            raise MissingWorkError(f"Request({self.name}).measure needs a unit of work")
        if not callable(work):
            raise MissingWorkError(f"Request({self.name}).measure got a non-callable unit of work: {work!r}")
        with self.tracking(labels) as duration_labels:
            return work(duration_labels)

    def __repr__(self) -> str:
        return f"Request({self.name!r}, labels={list(self.labels)!r})"


__all__ = ["Request", "FAILURE_LABEL", "BUCKET_LABEL"]

"""scrapekit exception hierarchy.

Two families matter to callers:

* ``UsageError`` subclasses signal caller defects (bad construction
  arguments, a bracketed call without its unit of work). They are raised
  synchronously and never retried.
* ``InvalidLabelSetError`` is raised when a label-set does not match a
  metric's declared label names. ``CollectedMetric.values()`` absorbs it (it
  becomes a collection error); every other caller sees it propagate.

Collection errors raised by user computations are never wrapped: they are
recorded under their own type name via ``kind_of``.
"""
from __future__ import annotations


class ScrapekitError(Exception):
    """Base class for all scrapekit exceptions."""


class UsageError(ScrapekitError):
    """A caller-fixable mistake in how the library is being used."""


class UnknownMetricKindError(UsageError, ValueError):
    """Metric kind is not one of gauge, counter, histogram, summary."""


class InvalidMetricNameError(UsageError, ValueError):
    """Metric or label name does not follow the Prometheus naming rules."""


class ReservedLabelError(UsageError, ValueError):
    """A declared label collides with a label the library adds itself."""


class MissingWorkError(UsageError, TypeError):
    """A bracketed measurement was requested without a unit of work."""


class SeriesRemovalError(UsageError, ValueError):
    """Series removal was requested on a metric that cannot hold series."""


class AlreadyRunningError(UsageError, RuntimeError):
    """The metrics server is already running."""


class InvalidLabelSetError(ScrapekitError, ValueError):
    """A label-set does not match the declared label names."""


def kind_of(exc: BaseException) -> str:
    """Return the failure-kind label value for ``exc``.

    Builtin exceptions are reported by bare name (``ValueError``); everything
    else is module-qualified (``scrapekit.errors.InvalidLabelSetError``).
    """
    cls = type(exc)
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


__all__ = [
    "ScrapekitError",
    "UsageError",
    "UnknownMetricKindError",
    "InvalidMetricNameError",
    "ReservedLabelError",
    "MissingWorkError",
    "SeriesRemovalError",
    "AlreadyRunningError",
    "InvalidLabelSetError",
    "kind_of",
]

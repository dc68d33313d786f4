"""Label-sets and label-set validation.

A `LabelSet` is an immutable, hashable mapping of label name to string value,
so it can key the value-maps returned by collected metrics:

    {LabelSet(mode="user"): 0.42, LabelSet(mode="system"): 3141.59}

Two label-sets are equal iff their mappings are equal; key order is
irrelevant. `LabelSetValidator` accepts only label-sets whose names are
exactly the declared ones.
"""
from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from scrapekit.errors import InvalidLabelSetError, InvalidMetricNameError

LABEL_NAME_RE = re.compile(r'^[a-zA-Z_][a-zA-Z0-9_]*$')
METRIC_NAME_RE = re.compile(r'^[a-zA-Z_:][a-zA-Z0-9_:]*$')


class LabelSet(Mapping[str, str]):
    __slots__ = ("_data", "_hash")

    def __init__(self, labels: Mapping[str, Any] | Iterable[tuple[str, Any]] | None = None, **kwargs: Any) -> None:
        data: dict[str, str] = {}
        if labels is not None:
            pairs = labels.items() if isinstance(labels, Mapping) else labels
            for k, v in pairs:
                data[k] = str(v)
        for k, v in kwargs.items():
            data[k] = str(v)
        self._data = data
        self._hash: int | None = None

    @classmethod
    def coerce(cls, value: Any) -> LabelSet:
        """Turn a mapping or an iterable of (name, value) pairs into a LabelSet."""
        if isinstance(value, cls):
            return value
        if value is None:
            return cls()
        if isinstance(value, Mapping):
            return cls(value)
        if isinstance(value, (str, bytes)):
            raise InvalidLabelSetError(f"label-set must be a mapping, got {value!r}")
        try:
            pairs = [tuple(p) for p in value]
        except TypeError:
            raise InvalidLabelSetError(f"label-set must be a mapping, got {value!r}") from None
        if any(len(p) != 2 for p in pairs):
            raise InvalidLabelSetError(f"label-set pairs must be (name, value), got {value!r}")
        return cls(pairs)

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(frozenset(self._data.items()))
        return self._hash

    def __repr__(self) -> str:
        return f"LabelSet({self._data!r})"


def label_set_from(labels: Any, kwargs: Mapping[str, Any]) -> LabelSet:
    """Build a label-set from a positional label-set plus keyword labels; keywords win."""
    label_set = LabelSet.coerce(labels)
    if not kwargs:
        return label_set
    return LabelSet({**label_set, **kwargs})


def validate_metric_name(name: str) -> str:
    if not isinstance(name, str) or not METRIC_NAME_RE.match(name):
        raise InvalidMetricNameError(f"invalid metric name: {name!r}")
    return name


def validate_label_names(names: Iterable[str]) -> tuple[str, ...]:
    out: list[str] = []
    for n in names:
        if not isinstance(n, str) or not LABEL_NAME_RE.match(n) or n.startswith('__'):
            raise InvalidMetricNameError(f"invalid label name: {n!r}")
        if n in out:
            raise InvalidMetricNameError(f"duplicate label name: {n!r}")
        out.append(n)
    return tuple(out)


class LabelSetValidator:
    """Check observed label-sets against a declared, ordered set of names."""

    def __init__(self, expected: Iterable[str] = ()) -> None:
        self.expected = validate_label_names(expected)
        self._expected_set = frozenset(self.expected)

    def validate(self, labels: Any) -> LabelSet:
        label_set = LabelSet.coerce(labels)
        bad = [k for k in label_set if not isinstance(k, str)]
        if bad:
            raise InvalidLabelSetError(f"label names must be strings, got {bad!r}")
        names = frozenset(label_set)
        if names != self._expected_set:
            missing = sorted(self._expected_set - names)
            unexpected = sorted(names - self._expected_set)
            raise InvalidLabelSetError(
                f"label-set {dict(label_set)!r} does not match expected labels {list(self.expected)!r} "
                f"(missing={missing}, unexpected={unexpected})"
            )
        return label_set

    def values_for(self, label_set: Mapping[str, str]) -> tuple[str, ...]:
        """Label values in declared order, as prometheus_client expects them."""
        return tuple(label_set[n] for n in self.expected)


__all__ = [
    "LabelSet",
    "LabelSetValidator",
    "InvalidLabelSetError",
    "label_set_from",
    "validate_metric_name",
    "validate_label_names",
]

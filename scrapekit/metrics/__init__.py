"""Metrics package public interface.

Stable import surfaces:
	from scrapekit.metrics import CollectedMetric, Request, remove_series, LabelSet
	from scrapekit.metrics.process import register_process_metrics
	from scrapekit.metrics.python_runtime import register_gc_metrics, register_vm_metrics
"""
from __future__ import annotations

from .collected import CollectedMetric, HistogramValue, SummaryValue
from .labels import InvalidLabelSetError, LabelSet, LabelSetValidator
from .request import Request
from .series import RemovableMetric, remove_series

__all__ = [
	"CollectedMetric",
	"HistogramValue",
	"SummaryValue",
	"InvalidLabelSetError",
	"LabelSet",
	"LabelSetValidator",
	"Request",
	"RemovableMetric",
	"remove_series",
]

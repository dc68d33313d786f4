"""Logging setup for the scrapekit entry point."""
from __future__ import annotations

import logging
import sys

DEFAULT_FORMAT = '%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: str = 'INFO', fmt: str = DEFAULT_FORMAT) -> logging.Logger:
    """Configure root logging with a single stderr handler.

    Existing root handlers are removed so repeated calls do not duplicate
    output. Unknown level names fall back to INFO.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    if not isinstance(log_level, int):
        log_level = logging.INFO
    root = logging.getLogger()
    root.setLevel(log_level)
    for h in root.handlers[:]:
        root.removeHandler(h)
        h.close()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt))
    root.addHandler(handler)
    return root


__all__ = ["DEFAULT_FORMAT", "setup_logging"]

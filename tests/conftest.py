"""Pytest configuration & fixtures for scrapekit.

Responsibilities:
1. Ensure project root on sys.path.
2. Provide a fresh CollectorRegistry per test so metric names never collide.
3. Gate socket-binding server tests: SCRAPEKIT_SKIP_NETWORK_TESTS=1 skips them.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest
from prometheus_client import CollectorRegistry

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from scrapekit.utils.env_flags import is_truthy_env  # noqa: E402


def pytest_configure(config):  # type: ignore
    config.addinivalue_line("markers", "network: test binds a local TCP socket")


def pytest_collection_modifyitems(config, items):  # type: ignore
    if not is_truthy_env('SCRAPEKIT_SKIP_NETWORK_TESTS'):
        return
    skip = pytest.mark.skip(reason="SCRAPEKIT_SKIP_NETWORK_TESTS set")
    for item in items:
        if 'network' in item.keywords:
            item.add_marker(skip)


@pytest.fixture()
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture()
def quiet_logger() -> logging.Logger:
    """A logger that records but never prints (caplog still sees it via propagation)."""
    lg = logging.getLogger("scrapekit.tests")
    lg.setLevel(logging.DEBUG)
    return lg

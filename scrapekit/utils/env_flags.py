"""Environment flag helpers.

Interprets environment variables as boolean feature flags using the canonical
truthy set {"1","true","yes","on"} (case-insensitive).

Usage:
    from scrapekit.utils.env_flags import is_truthy_env
    if is_truthy_env('SCRAPEKIT_PROCESS_METRICS', '1'):
        ...
"""
from __future__ import annotations

import os
from collections.abc import Mapping

TRUTHY_SET: set[str] = {"1","true","yes","on"}
FALSY_SET: set[str] = {"0","false","no","off"}


def is_truthy(value: str | None) -> bool:
    if not value:
        return False
    return value.strip().lower() in TRUTHY_SET


def is_truthy_env(name: str, default: str | None = None, environ: Mapping[str, str] | None = None) -> bool:
    env = os.environ if environ is None else environ
    return is_truthy(env.get(name, default or ''))


__all__ = [
    'TRUTHY_SET',
    'FALSY_SET',
    'is_truthy',
    'is_truthy_env',
]

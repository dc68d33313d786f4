"""Environment configuration for the scrapekit metrics server.

All environment lookups made by ``python -m scrapekit`` route through this
module, which parses them into a single frozen dataclass (`ServerEnv`) with
explicit defaults and light validation.

Recognised variables:
  * SCRAPEKIT_PORT              TCP port to listen on (default 8080, 0 = ephemeral)
  * SCRAPEKIT_HOST              bind address (default "" = all interfaces)
  * SCRAPEKIT_METRICS_PREFIX    prefix of the server's own request metrics
  * SCRAPEKIT_PROCESS_METRICS   register process_* collectors (default on)
  * SCRAPEKIT_RUNTIME_METRICS   register python_gc_* / python_vm_* collectors (default on)
  * SCRAPEKIT_LOG_LEVEL         root log level (default INFO)

Unparseable values fall back to the default rather than raising.
"""
from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from scrapekit.utils.env_flags import FALSY_SET, TRUTHY_SET

__all__ = [
    "ServerEnv",
    "load_server_env",
]


def _get(environ: Mapping[str, str], key: str) -> str | None:
    v = environ.get(key)
    if v is None:
        return None
    v2 = v.strip()
    return v2 if v2 != "" else None


def _get_bool(environ: Mapping[str, str], key: str, default: bool = False) -> bool:
    v = _get(environ, key)
    if v is None:
        return default
    lv = v.lower()
    if lv in TRUTHY_SET:
        return True
    if lv in FALSY_SET:
        return False
    return default


def _get_int(
    environ: Mapping[str, str], key: str, default: int, *, min_v: int | None = None, max_v: int | None = None
) -> int:
    v = _get(environ, key)
    if v is None:
        return default
    try:
        iv = int(float(v))
    except ValueError:
        return default
    if min_v is not None and iv < min_v:
        iv = min_v
    if max_v is not None and iv > max_v:
        iv = max_v
    return iv


@dataclass(frozen=True, slots=True)
class ServerEnv:
    port: int = 8080
    host: str = ""
    metrics_prefix: str = "scrapekit_server"
    process_metrics: bool = True
    runtime_metrics: bool = True
    log_level: str = "INFO"


def load_server_env(environ: Mapping[str, str] | None = None) -> ServerEnv:
    """Build a `ServerEnv` from ``environ`` (defaults to ``os.environ``)."""
    env = os.environ if environ is None else environ
    return ServerEnv(
        port=_get_int(env, "SCRAPEKIT_PORT", 8080, min_v=0, max_v=65535),
        host=_get(env, "SCRAPEKIT_HOST") or "",
        metrics_prefix=_get(env, "SCRAPEKIT_METRICS_PREFIX") or "scrapekit_server",
        process_metrics=_get_bool(env, "SCRAPEKIT_PROCESS_METRICS", True),
        runtime_metrics=_get_bool(env, "SCRAPEKIT_RUNTIME_METRICS", True),
        log_level=(_get(env, "SCRAPEKIT_LOG_LEVEL") or "INFO").upper(),
    )

"""Route http.server log output into `logging`.

`BaseHTTPRequestHandler` writes access and error lines straight to stderr,
with no level, no logger name and no formatting. `AccessLogAdapter` sends
them to a real logger instead: access lines at a configurable level (DEBUG by
default, so they can be switched off independently), error lines at ERROR,
each tagged with the adapter's name via ``extra={'component': ...}``.
"""
from __future__ import annotations

import logging
from typing import Any


class AccessLogAdapter:
    def __init__(self, logger: logging.Logger, name: str = "scrapekit.server", access_level: int = logging.DEBUG) -> None:
        self.logger = logger
        self.name = name
        self.access_level = access_level

    def access(self, client: str, fmt: str, *args: Any) -> None:
        if self.logger.isEnabledFor(self.access_level):
            self.logger.log(self.access_level, "%s %s - " + fmt, self.name, client, *args,
                            extra={"component": self.name})

    def error(self, client: str, fmt: str, *args: Any) -> None:
        self.logger.error("%s %s - " + fmt, self.name, client, *args, extra={"component": self.name})


__all__ = ["AccessLogAdapter"]

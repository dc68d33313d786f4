"""Start a scrapekit metrics server and keep it running.

Defaults come from the environment (see `scrapekit.config`); command-line
flags override them.

    python -m scrapekit --port 9108
"""
from __future__ import annotations

import argparse
import logging
import sys
import time

from scrapekit.config import load_server_env
from scrapekit.metrics.process import register_process_metrics
from scrapekit.metrics.python_runtime import register_gc_metrics, register_vm_metrics
from scrapekit.server import MetricsServer
from scrapekit.utils.logging_utils import setup_logging
from scrapekit.version import get_version

logger = logging.getLogger("scrapekit")


def build_server(argv: list[str]) -> MetricsServer:
    env = load_server_env()
    p = argparse.ArgumentParser(prog="scrapekit", description="Start a Prometheus metrics server")
    p.add_argument("--port", type=int, default=env.port)
    p.add_argument("--host", default=env.host)
    p.add_argument("--metrics-prefix", default=env.metrics_prefix)
    p.add_argument("--log-level", default=env.log_level)
    p.add_argument("--no-process-metrics", dest="process_metrics", action="store_false", default=env.process_metrics)
    p.add_argument("--no-runtime-metrics", dest="runtime_metrics", action="store_false", default=env.runtime_metrics)
    args = p.parse_args(argv)

    setup_logging(args.log_level)
    server = MetricsServer(args.port, args.host, logger=logger, metrics_prefix=args.metrics_prefix)
    if args.process_metrics:
        register_process_metrics(server.registry, logger=logger)
    if args.runtime_metrics:
        register_gc_metrics(server.registry, logger=logger)
        register_vm_metrics(server.registry, logger=logger)
    return server


def main(argv: list[str]) -> int:
    server = build_server(argv)
    server.run()
    logger.info("scrapekit %s serving http://%s:%s/metrics", get_version(), server.host or "0.0.0.0", server.port)
    try:
        while True:
            time.sleep(3600)
    except KeyboardInterrupt:
        return 0
    finally:
        server.shutdown()


def _entry() -> int:
    return main(sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))

"""
sqsd.cli — Daemon entry point.

Reads configuration from SQSD_* environment variables (command-line flags
override a few of them), optionally waits for the downstream health URL,
then runs the Supervisor until SIGINT/SIGTERM.

Usage:
    sqsd
    sqsd --queue-url https://sqs.eu-west-2.amazonaws.com/111111111111/jobs \
         --http-url http://localhost:8080/work --max-conns 20

Exit codes:
    0  clean shutdown
    2  configuration error
"""

from __future__ import annotations

import argparse
import os
import signal
import threading
from collections.abc import Mapping
from types import FrameType
from typing import Any

from aws_lambda_powertools import Logger

from sqsd.clients import build_http_session, build_sqs_client
from sqsd.config import SqsdConfig, load_config
from sqsd.exceptions import ConfigurationError
from sqsd.health import wait_until_healthy
from sqsd.supervisor import Supervisor

logger = Logger(service="sqsd")

# Flag dest -> environment variable it overrides.
_ENV_OVERRIDES = {
    "queue_url": "SQSD_QUEUE_URL",
    "http_url": "SQSD_HTTP_URL",
    "max_conns": "SQSD_HTTP_MAX_CONNS",
    "log_level": "LOG_LEVEL",
}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sqsd",
        description="Deliver SQS messages to an HTTP endpoint, deleting each on a 2xx response.",
    )
    parser.add_argument("--queue-url", default=None, help="Queue URL (overrides SQSD_QUEUE_URL)")
    parser.add_argument("--http-url", default=None, help="Target URL (overrides SQSD_HTTP_URL)")
    parser.add_argument(
        "--max-conns",
        type=int,
        default=None,
        help="Worker count and HTTP pool size (overrides SQSD_HTTP_MAX_CONNS)",
    )
    parser.add_argument("--log-level", default=None, help="Log level (overrides LOG_LEVEL)")
    return parser.parse_args(argv)


def resolve_environ(args: argparse.Namespace, environ: Mapping[str, str]) -> dict[str, str]:
    merged = dict(environ)
    for dest, variable in _ENV_OVERRIDES.items():
        value = getattr(args, dest)
        if value is not None:
            merged[variable] = str(value)
    return merged


def install_signal_handlers(stop: threading.Event) -> None:
    def _handle(signum: int, _frame: FrameType | None) -> None:
        logger.info("Received signal; stopping", extra={"signal": signal.Signals(signum).name})
        stop.set()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def build_supervisor(config: SqsdConfig, stop: threading.Event, *, log: Any = None) -> Supervisor:
    sqs_client = build_sqs_client(
        config.queue_region,
        endpoint_url=config.aws_endpoint or None,
        max_pool_connections=config.http_max_conns,
        wait_time_seconds=config.queue_wait_time,
    )
    return Supervisor(
        sqs_client,
        build_http_session(config.http_max_conns),
        config.worker_config(),
        http_timeout=config.http_timeout,
        log=log or logger,
        stop=stop,
    )


def run(config: SqsdConfig, stop: threading.Event) -> int:
    if config.http_health_url:
        healthy = wait_until_healthy(
            config.http_health_url,
            initial_wait=config.http_health_wait,
            interval=config.http_health_interval,
            success_count=config.http_health_success_count,
            stop=stop,
            log=logger,
        )
        if not healthy:
            logger.info("Stopped before the health check passed")
            return 0

    supervisor = build_supervisor(config, stop)
    supervisor.start(config.http_max_conns)
    supervisor.wait()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        config = load_config(resolve_environ(args, os.environ))
    except ConfigurationError as exc:
        logger.error("Invalid configuration", extra={"variable": exc.variable, "error": str(exc)})
        return 2

    logger.setLevel(config.log_level)
    logger.append_keys(**config.log_fields())

    stop = threading.Event()
    install_signal_handlers(stop)
    return run(config, stop)


if __name__ == "__main__":
    raise SystemExit(main())

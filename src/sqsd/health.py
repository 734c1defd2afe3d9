"""
sqsd.health — Pre-start health gate.

Blocks daemon startup until the downstream application answers its health
URL with HTTP 200 a configured number of times in a row. Any other answer
(or a connection error) resets the streak.
"""

from __future__ import annotations

import threading
from typing import Any

import requests
from aws_lambda_powertools import Logger

logger = Logger(service="sqsd")

DEFAULT_PROBE_TIMEOUT_SECONDS = 5


def probe(session: requests.Session, url: str, *, timeout: float) -> str | None:
    """GET the health URL once. Returns None when healthy, else a failure description."""
    try:
        response = session.get(url, timeout=timeout)
    except requests.RequestException as exc:
        return str(exc)
    try:
        if response.status_code == 200:
            return None
        return f"Server returned status code {response.status_code}"
    finally:
        response.close()


def wait_until_healthy(
    url: str,
    *,
    initial_wait: float,
    interval: float,
    success_count: int = 1,
    session: requests.Session | None = None,
    stop: threading.Event | None = None,
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
    log: Any = None,
) -> bool:
    """Return True once success_count consecutive probes succeed, False if stop is set first."""
    if session is None:
        with requests.Session() as owned:
            return wait_until_healthy(
                url,
                initial_wait=initial_wait,
                interval=interval,
                success_count=success_count,
                session=owned,
                stop=stop,
                probe_timeout=probe_timeout,
                log=log,
            )

    log = log or logger
    stop = stop or threading.Event()

    log.info(
        "Waiting before starting health check",
        extra={"health_url": url, "wait_seconds": initial_wait},
    )
    if stop.wait(initial_wait):
        return False

    streak = 0
    while True:
        failure = probe(session, url, timeout=probe_timeout)
        if failure is None:
            streak += 1
            log.debug("Health check passed", extra={"streak": streak, "required": success_count})
            if streak >= success_count:
                log.info("Health check succeeded. Starting message processing")
                return True
        else:
            streak = 0
            log.info(
                "Health check failed; waiting before next attempt",
                extra={"error": failure, "retry_in_seconds": interval},
            )
        if stop.wait(interval):
            return False

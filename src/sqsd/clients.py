"""
sqsd.clients — Construction of the shared SQS client and HTTP session.

Both are built once at startup and shared read-only by every worker.
Connection pools are sized to the worker count so that no worker waits on
a free connection.
"""

from __future__ import annotations

from typing import Any

import boto3
import requests
from botocore.config import Config
from requests.adapters import HTTPAdapter
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool

from sqsd.deadline import track_connection

# Slack added on top of the long-poll wait before botocore gives up on a read.
_READ_TIMEOUT_MARGIN_SECONDS = 10


def build_sqs_client(
    region: str,
    *,
    endpoint_url: str | None = None,
    max_pool_connections: int = 10,
    wait_time_seconds: int = 20,
) -> Any:
    config = Config(
        region_name=region,
        max_pool_connections=max_pool_connections,
        read_timeout=wait_time_seconds + _READ_TIMEOUT_MARGIN_SECONDS,
        connect_timeout=5,
        retries={"mode": "standard", "max_attempts": 3},
    )
    return boto3.client("sqs", region_name=region, endpoint_url=endpoint_url or None, config=config)


def build_http_session(max_conns: int) -> requests.Session:
    """Return a Session whose pool holds max_conns connections per host.

    Transport-level retries are disabled: a failed delivery is retried only
    by queue redelivery. Connections can be aborted by a RequestDeadline.
    """
    session = requests.Session()
    adapter = AbortableHTTPAdapter(
        pool_connections=max_conns, pool_maxsize=max_conns, max_retries=0
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class _TrackedHTTPConnectionPool(HTTPConnectionPool):
    def _get_conn(self, timeout: float | None = None) -> Any:
        conn = super()._get_conn(timeout)
        track_connection(conn)
        return conn


class _TrackedHTTPSConnectionPool(HTTPSConnectionPool):
    def _get_conn(self, timeout: float | None = None) -> Any:
        conn = super()._get_conn(timeout)
        track_connection(conn)
        return conn


class AbortableHTTPAdapter(HTTPAdapter):
    """HTTPAdapter whose connections register with the caller's RequestDeadline."""

    def init_poolmanager(self, *args: Any, **kwargs: Any) -> None:
        super().init_poolmanager(*args, **kwargs)
        self.poolmanager.pool_classes_by_scheme = {
            "http": _TrackedHTTPConnectionPool,
            "https": _TrackedHTTPSConnectionPool,
        }

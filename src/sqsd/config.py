"""
sqsd.config — Process configuration loaded from environment variables.

Read once at startup into a frozen SqsdConfig. Nothing downstream reads
os.environ; the Supervisor receives a WorkerConfig by value.

Required:
    SQSD_QUEUE_URL, SQSD_HTTP_URL, SQSD_QUEUE_REGION (falls back to AWS_REGION)

Any missing or invalid value raises ConfigurationError, which is fatal.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from sqsd.exceptions import ConfigurationError
from sqsd.models import WorkerConfig

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------
DEFAULT_QUEUE_MAX_MESSAGES = 10
DEFAULT_QUEUE_WAIT_TIME = 10
DEFAULT_HTTP_MAX_CONNS = 50
DEFAULT_HTTP_TIMEOUT = 30
DEFAULT_HEALTH_WAIT = 5
DEFAULT_HEALTH_INTERVAL = 5
DEFAULT_HEALTH_SUCCESS_COUNT = 1
DEFAULT_LOG_LEVEL = "INFO"

# SQS service limits for ReceiveMessage
SQS_MAX_MESSAGES_LIMIT = 10
SQS_MAX_WAIT_TIME = 20

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class SqsdConfig:
    queue_region: str
    queue_url: str
    http_url: str
    queue_max_messages: int = DEFAULT_QUEUE_MAX_MESSAGES
    queue_wait_time: int = DEFAULT_QUEUE_WAIT_TIME
    http_content_type: str = ""
    http_max_conns: int = DEFAULT_HTTP_MAX_CONNS
    http_timeout: int = DEFAULT_HTTP_TIMEOUT
    http_hmac_header: str = ""
    hmac_secret_key: bytes = field(default=b"", repr=False)
    http_health_url: str = ""
    http_health_wait: int = DEFAULT_HEALTH_WAIT
    http_health_interval: int = DEFAULT_HEALTH_INTERVAL
    http_health_success_count: int = DEFAULT_HEALTH_SUCCESS_COUNT
    aws_endpoint: str = ""
    log_level: str = DEFAULT_LOG_LEVEL

    def worker_config(self) -> WorkerConfig:
        return WorkerConfig(
            queue_url=self.queue_url,
            http_url=self.http_url,
            queue_max_messages=self.queue_max_messages,
            queue_wait_time=self.queue_wait_time,
            http_content_type=self.http_content_type,
            http_hmac_header=self.http_hmac_header,
            hmac_secret_key=self.hmac_secret_key,
        )

    def log_fields(self) -> dict[str, Any]:
        """Identifying fields bound into every log record. Never includes the secret."""
        return {
            "queue_region": self.queue_region,
            "queue_url": self.queue_url,
            "http_max_conns": self.http_max_conns,
            "http_url": self.http_url,
        }


def _get_str(environ: Mapping[str, str], name: str, default: str = "") -> str:
    return environ.get(name, default).strip() or default


def _get_int(
    environ: Mapping[str, str],
    name: str,
    default: int,
    *,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(name, f"expected an integer, got {raw!r}") from None
    if minimum is not None and value < minimum:
        raise ConfigurationError(name, f"must be >= {minimum}, got {value}")
    if maximum is not None and value > maximum:
        raise ConfigurationError(name, f"must be <= {maximum}, got {value}")
    return value


def _require(value: str, name: str) -> str:
    if not value:
        raise ConfigurationError(name, "cannot be empty")
    return value


def load_config(environ: Mapping[str, str]) -> SqsdConfig:
    """Build and validate SqsdConfig from an environment mapping."""
    queue_region = _get_str(environ, "SQSD_QUEUE_REGION") or _get_str(environ, "AWS_REGION")
    hmac_header = _get_str(environ, "SQSD_HTTP_HMAC_HEADER")
    secret_key = environ.get("SQSD_HMAC_SECRET_KEY", "").encode("utf-8")
    if secret_key and not hmac_header:
        raise ConfigurationError(
            "SQSD_HTTP_HMAC_HEADER", "must be set when SQSD_HMAC_SECRET_KEY is set"
        )

    log_level = _get_str(environ, "LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
    if log_level not in LOG_LEVELS:
        raise ConfigurationError("LOG_LEVEL", f"unknown log level {log_level!r}")

    return SqsdConfig(
        queue_region=_require(queue_region, "SQSD_QUEUE_REGION"),
        queue_url=_require(_get_str(environ, "SQSD_QUEUE_URL"), "SQSD_QUEUE_URL"),
        http_url=_require(_get_str(environ, "SQSD_HTTP_URL"), "SQSD_HTTP_URL"),
        queue_max_messages=_get_int(
            environ,
            "SQSD_QUEUE_MAX_MSGS",
            DEFAULT_QUEUE_MAX_MESSAGES,
            minimum=1,
            maximum=SQS_MAX_MESSAGES_LIMIT,
        ),
        queue_wait_time=_get_int(
            environ,
            "SQSD_QUEUE_WAIT_TIME",
            DEFAULT_QUEUE_WAIT_TIME,
            minimum=0,
            maximum=SQS_MAX_WAIT_TIME,
        ),
        http_content_type=_get_str(environ, "SQSD_HTTP_CONTENT_TYPE"),
        http_max_conns=_get_int(environ, "SQSD_HTTP_MAX_CONNS", DEFAULT_HTTP_MAX_CONNS, minimum=1),
        http_timeout=_get_int(environ, "SQSD_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT, minimum=1),
        http_hmac_header=hmac_header,
        hmac_secret_key=secret_key,
        http_health_url=_get_str(environ, "SQSD_HTTP_HEALTH_URL"),
        http_health_wait=_get_int(
            environ, "SQSD_HTTP_HEALTH_WAIT", DEFAULT_HEALTH_WAIT, minimum=0
        ),
        http_health_interval=_get_int(
            environ, "SQSD_HTTP_HEALTH_INTERVAL", DEFAULT_HEALTH_INTERVAL, minimum=0
        ),
        http_health_success_count=_get_int(
            environ, "SQSD_HTTP_HEALTH_SUCCESS_COUNT", DEFAULT_HEALTH_SUCCESS_COUNT, minimum=1
        ),
        aws_endpoint=_get_str(environ, "SQSD_AWS_ENDPOINT"),
        log_level=log_level,
    )

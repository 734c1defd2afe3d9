"""
sqsd.delivery — HTTP delivery of one Message to the target endpoint.

Wire contract, one request per Message:
  POST {http_url}
  body:          raw Message payload bytes
  Content-Type:  configured value, omitted when empty
  {hmac header}: hex HMAC-SHA256 of the body, only when a secret is configured

Any 2xx response is Delivered. Every other status code, transport error or
timeout is Failed. The timeout covers the whole request, not each socket
read. No retries happen here; a Failed message is left on the
queue and comes back after its visibility timeout.
"""

from __future__ import annotations

from typing import Any

import requests
from aws_lambda_powertools import Logger

from sqsd.deadline import RequestDeadline
from sqsd.models import DeliveryOutcome, Message, WorkerConfig
from sqsd.signing import sign_body

logger = Logger(service="sqsd")


class DeliveryClient:
    def __init__(
        self,
        config: WorkerConfig,
        session: requests.Session,
        *,
        timeout: float,
        log: Any = None,
    ) -> None:
        self._config = config
        self._session = session
        self._timeout = timeout
        self._log = log or logger

    def build_headers(self, body: bytes) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._config.http_content_type:
            headers["Content-Type"] = self._config.http_content_type
        if self._config.signing_enabled:
            headers[self._config.http_hmac_header] = sign_body(body, self._config.hmac_secret_key)
        return headers

    def deliver(self, message: Message) -> DeliveryOutcome:
        """POST the message body and classify the response. Never raises.

        The timeout bounds the whole attempt, including a slowly streamed
        response. An attempt that runs past it is Failed whatever the status.
        """
        headers = self.build_headers(message.body)
        deadline = RequestDeadline(self._timeout)
        try:
            with deadline:
                response = self._session.post(
                    self._config.http_url,
                    data=message.body,
                    headers=headers,
                    timeout=self._timeout,
                )
        except requests.RequestException as exc:
            if deadline.expired or isinstance(exc, requests.Timeout):
                return DeliveryOutcome.failed(error=f"timeout after {self._timeout}s: {exc}")
            return DeliveryOutcome.failed(error=str(exc))

        try:
            status_code = response.status_code
            if deadline.expired:
                return DeliveryOutcome.failed(
                    status_code=status_code, error=f"timeout after {self._timeout}s"
                )
            if 200 <= status_code < 300:
                return DeliveryOutcome.delivered(status_code)
            self._log.debug(
                "Delivery rejected by endpoint",
                extra={
                    "message_id": message.message_id,
                    "status_code": status_code,
                    "response_body": response.text[:512],
                },
            )
            return DeliveryOutcome.failed(status_code=status_code)
        finally:
            response.close()

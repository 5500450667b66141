"""HTTP endpoint warmup: exercises a route until it answers fast and correctly.

Cold endpoints pay for lazy imports, connection pools and template/serializer
caches on the first request. Hitting them during warmup moves that cost out of
the first user request.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

import httpx

from .base import Check, CheckResult, elapsed_ms

if TYPE_CHECKING:
    from ..registry import EndpointDef

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/json"


class EndpointCheck(Check):
    """Calls a configured endpoint and checks status code + response time.

    Success requires the expected status (any 2xx when none is configured)
    within ``max_response_time_ms``, which is also the request timeout.
    """

    def __init__(self, endpoint: EndpointDef, client: httpx.Client | None = None) -> None:
        self.endpoint = endpoint
        self._client = client

    def identity(self) -> str:
        return self.endpoint.name

    def _send(self, method: str, headers: httpx.Headers) -> httpx.Response:
        ep = self.endpoint
        timeout = ep.max_response_time_ms / 1000
        content = ep.request_body.encode("utf-8") if ep.request_body is not None else None
        if self._client is not None:
            return self._client.request(
                method, ep.url, headers=headers, content=content,
                timeout=timeout, follow_redirects=True,
            )
        with httpx.Client(timeout=timeout, follow_redirects=True) as client:
            return client.request(method, ep.url, headers=headers, content=content)

    def execute(self) -> CheckResult:
        ep = self.endpoint
        method = (ep.http_method or "GET").upper()
        logger.debug("Calling warmup endpoint: %s %s", method, ep.url)

        # Default Content-Type first so configured headers can override it
        headers = httpx.Headers({"Content-Type": DEFAULT_CONTENT_TYPE})
        headers.update(ep.headers or {})

        t0 = time.perf_counter()
        try:
            resp = self._send(method, headers)
            latency = elapsed_ms(t0)

            if ep.expected_status is not None:
                status_ok = resp.status_code == ep.expected_status
            else:
                status_ok = resp.is_success
            time_ok = latency <= ep.max_response_time_ms

            if status_ok and time_ok:
                logger.info("Warming up - %s %s succeeded", method, ep.name)
                return CheckResult.ok(latency)

            if not status_ok:
                msg = f"HTTP {resp.status_code} error for {ep.name}"
            else:
                msg = (
                    f"Response time {latency}ms exceeds acceptable threshold "
                    f"{ep.max_response_time_ms}ms for {ep.url}"
                )

            if ep.ignore_failure:
                logger.warning("Ignoring failure for %s %s: %s", method, ep.url, msg)
                return CheckResult.ok(latency)

            logger.warning(msg)
            return CheckResult.failure(msg, latency)
        except Exception as e:
            latency = elapsed_ms(t0)
            msg = str(e) or type(e).__name__

            if ep.ignore_failure:
                logger.warning("Ignoring exception for %s %s: %s", method, ep.url, msg)
                return CheckResult.ok(latency)

            return CheckResult.failure(msg, latency)

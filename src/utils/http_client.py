"""
Outbound HTTP for the provider clients.

Every call gets an explicit timeout and all retrying happens in
request_with_retry; the httpx transport itself never retries.

- Connection failures (request never sent) are retried for any method.
- Safe methods (GET/HEAD/OPTIONS) are also retried on other transport
  errors and on 502/503/504, with exponential backoff.
- DELETE and POST are never replayed once the request may have reached
  the upstream: a replayed admin DELETE answers 404 for a user the first
  attempt already removed.

An optional deadline (time.monotonic() seconds) bounds the whole call,
retries and backoff included, so the handler can still answer before
API Gateway gives up on it.
"""

import random
import time
from typing import Any, Optional

import httpx

from utils.config import Settings
from utils.logger import get_logger

logger = get_logger("http_client")

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
RETRYABLE_STATUSES = frozenset({502, 503, 504})
# The request never left this process when these are raised
NOT_SENT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)
MAX_BACKOFF_SECONDS = 8.0
# Left for shaping the response once the upstream calls are done
DEADLINE_MARGIN_SECONDS = 1.0


def build_http_client(
    settings: Settings,
    *,
    base_url: str = "",
    headers: Optional[dict] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """
    Create an httpx.Client with the configured timeout.

    `transport` is only meant for tests (httpx.MockTransport).
    """
    if transport is None:
        transport = httpx.HTTPTransport(retries=0)

    return httpx.Client(
        base_url=base_url,
        headers=headers or {},
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        transport=transport,
    )


def invocation_deadline(settings: Settings, context: Any) -> float:
    """
    Monotonic deadline for all outbound calls of one invocation.

    The tighter of the configured request budget and the Lambda time
    remaining (context.get_remaining_time_in_millis), minus a margin.
    """
    budget = settings.request_budget_seconds
    get_remaining = getattr(context, "get_remaining_time_in_millis", None)
    if callable(get_remaining):
        budget = min(budget, get_remaining() / 1000.0)
    return time.monotonic() + max(budget - DEADLINE_MARGIN_SECONDS, 0.0)


def _backoff_delay(attempt: int) -> float:
    return min(0.25 * (2 ** attempt), MAX_BACKOFF_SECONDS) + random.random() * 0.1


def _can_retry(method: str, error: Optional[httpx.TransportError]) -> bool:
    if method in SAFE_METHODS:
        return True
    return isinstance(error, NOT_SENT_ERRORS)


def request_with_retry(
    client: httpx.Client,
    method: str,
    url: str,
    *,
    max_retries: int = 2,
    deadline: Optional[float] = None,
    **kwargs: Any,
) -> httpx.Response:
    """
    Send a request, retrying only where a replay cannot repeat a side effect.

    Transport errors from the final attempt propagate as httpx.HTTPError;
    running out of time raises httpx.TimeoutException.
    """
    method = method.upper()
    attempt = 0

    while True:
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise httpx.TimeoutException(f"Deadline exceeded before {method} {url}")
            limit = client.timeout.read
            if limit is None or remaining < limit:
                kwargs["timeout"] = remaining

        try:
            resp = client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            if attempt >= max_retries or not _can_retry(method, e):
                raise
            failure, event = e, "http.transport_error"
            fields = {"error": str(e)}
        else:
            if (
                resp.status_code not in RETRYABLE_STATUSES
                or attempt >= max_retries
                or method not in SAFE_METHODS
            ):
                return resp
            failure, event = resp, "http.retryable_status"
            fields = {"status": resp.status_code}

        delay = _backoff_delay(attempt)
        if deadline is not None and time.monotonic() + delay >= deadline:
            logger.warning("http.retry_abandoned", extra={"method": method, "url": url, "attempt": attempt + 1})
            if isinstance(failure, httpx.Response):
                return failure
            raise failure

        logger.warning(event, extra={"method": method, "url": url, "attempt": attempt + 1, **fields})
        time.sleep(delay)
        attempt += 1

"""Upstream delivery with key rotation and retries."""

import asyncio
import time
from enum import Enum
from typing import Any, Awaitable, Callable

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_incrementing,
)

from claude_relay.core.key_pool import KeyPool
from claude_relay.metrics import MetricsExporter
from claude_relay.utils import get_logger, mask_key

logger = get_logger(__name__)

# Statuses that quarantine the key that produced them
KEY_FAILURE_STATUSES = frozenset({401, 403})


class DeliveryState(Enum):
    """Delivery states."""

    ATTEMPTING = "attempting"
    SUCCESS = "success"
    RETRYING = "retrying"
    EXHAUSTED = "exhausted"


def _is_failed_response(response: httpx.Response) -> bool:
    return not response.is_success


def _surface_last_outcome(retry_state: RetryCallState) -> httpx.Response:
    """Return the last error response, or re-raise the last exception."""
    logger.error(
        "delivery.state",
        state=DeliveryState.EXHAUSTED.value,
        attempts=retry_state.attempt_number,
    )
    return retry_state.outcome.result()


class DeliveryOrchestrator:
    """Sends outbound requests, rotating keys between attempts.

    Each attempt selects a key from the pool. 2xx responses are returned
    still open so the body can be streamed; the caller closes them.
    401/403 responses and network errors quarantine the key; other error
    statuses are retried with the key left in rotation. Attempt ``n`` is
    followed by a ``n * backoff`` second pause.

    When attempts run out the last error response is returned with its
    body already read, or the last network error is raised as is.
    """

    def __init__(
        self,
        pool: KeyPool,
        client: httpx.AsyncClient,
        url: str,
        max_attempts: int = 3,
        backoff: float = 1.0,
        timeout: float = 120,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize orchestrator.

        Args:
            pool: Upstream key pool
            client: Shared HTTP client
            url: Upstream chat completions URL
            max_attempts: Attempts before giving up
            backoff: Delay multiplier in seconds
            timeout: Per-request timeout in seconds
            sleep: Awaitable sleep, replaceable in tests
        """
        self.pool = pool
        self.client = client
        self.url = url
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.timeout = timeout
        self._sleep = sleep

    async def deliver(self, payload: dict[str, Any]) -> httpx.Response:
        """Send a chat completions request upstream.

        Args:
            payload: Outbound request body

        Returns:
            Open 2xx response, or the last error response once retries are
            exhausted

        Raises:
            httpx.RequestError: If the final attempt failed at network level
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(start=self.backoff, increment=self.backoff),
            retry=(
                retry_if_exception_type(httpx.RequestError)
                | retry_if_result(_is_failed_response)
            ),
            before_sleep=self._log_retry,
            retry_error_callback=_surface_last_outcome,
            sleep=self._sleep,
        )
        return await retrying(self._attempt, payload)

    async def _attempt(self, payload: dict[str, Any]) -> httpx.Response:
        key = self.pool.select()
        model = payload.get("model", "")
        logger.info(
            "delivery.state",
            state=DeliveryState.ATTEMPTING.value,
            key=mask_key(key),
            model=model,
        )

        start_time = time.time()
        request = self.client.build_request(
            "POST",
            self.url,
            headers={
                "Authorization": f"Bearer {key}",
                "Content-Type": "application/json",
            },
            json=payload,
            timeout=self.timeout,
        )
        try:
            response = await self.client.send(request, stream=True)
        except httpx.RequestError as e:
            reason = str(e) or type(e).__name__
            self.pool.mark_failed(key, reason)
            MetricsExporter.record_key_failure("network")
            MetricsExporter.record_attempt("network_error")
            logger.error("delivery.attempt_failed", key=mask_key(key), error=reason)
            raise

        if response.is_success:
            MetricsExporter.record_attempt("success")
            MetricsExporter.record_response_time(model, time.time() - start_time)
            logger.info(
                "delivery.state",
                state=DeliveryState.SUCCESS.value,
                status=response.status_code,
            )
            return response

        try:
            await response.aread()
        finally:
            await response.aclose()

        MetricsExporter.record_attempt("http_error")
        if response.status_code in KEY_FAILURE_STATUSES:
            self.pool.mark_failed(key, f"HTTP {response.status_code}")
            MetricsExporter.record_key_failure(f"http_{response.status_code}")

        logger.error(
            "delivery.attempt_failed",
            key=mask_key(key),
            status=response.status_code,
            body=response.text[:500],
        )
        return response

    def _log_retry(self, retry_state: RetryCallState) -> None:
        logger.warning(
            "delivery.state",
            state=DeliveryState.RETRYING.value,
            attempt=retry_state.attempt_number,
            max_attempts=self.max_attempts,
            delay=retry_state.next_action.sleep if retry_state.next_action else None,
        )

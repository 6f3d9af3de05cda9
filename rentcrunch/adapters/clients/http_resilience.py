# rentcrunch/adapters/clients/http_resilience.py
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from typing import Any

import httpx

from ...config import settings

log = logging.getLogger(__name__)

RETRYABLE_STATUS = (429, 500, 502, 503, 504)
MAX_BACKOFF_S = 5.0


@dataclass(frozen=True)
class RetryPolicy:
    """Knobs for one outbound call. Clients pass their own or take the configured one."""

    timeout_s: float = 10.0
    max_retries: int = 2
    backoff_base_s: float = 0.5
    rate_limit_rps: float = 1.0
    circuit_fail_threshold: int = 5
    circuit_reset_s: float = 60.0

    @classmethod
    def from_settings(cls, *, timeout_s: float | None = None) -> RetryPolicy:
        return cls(
            timeout_s=float(timeout_s if timeout_s is not None else settings.HTTP_TIMEOUT_S),
            max_retries=int(settings.HTTP_MAX_RETRIES),
            backoff_base_s=float(settings.HTTP_BACKOFF_BASE_S),
            rate_limit_rps=float(settings.HTTP_RATE_LIMIT_RPS),
            circuit_fail_threshold=int(settings.HTTP_CIRCUIT_FAIL_THRESHOLD),
            circuit_reset_s=float(settings.HTTP_CIRCUIT_RESET_S),
        )

    def backoff(self, attempt: int) -> float:
        return min(MAX_BACKOFF_S, self.backoff_base_s * (2**attempt))


class CircuitBreaker:
    """Counts consecutive provider failures; refuses calls for a cool-down once tripped."""

    def __init__(self) -> None:
        self.fails = 0
        self.opened_at: float | None = None

    def is_open(self, reset_s: float, now: float | None = None) -> bool:
        if self.opened_at is None:
            return False
        return ((now if now is not None else time.time()) - self.opened_at) < reset_s

    def record_success(self) -> None:
        self.fails = 0
        self.opened_at = None

    def record_failure(self, threshold: int) -> None:
        self.fails += 1
        if self.fails < threshold:
            return
        if self.opened_at is None:
            log.warning("circuit opened after %s consecutive failures", self.fails)
        self.opened_at = time.time()


class RateLimiter:
    """Spaces requests at least 1/rps apart across the process."""

    def __init__(self) -> None:
        self._lock: asyncio.Lock | None = None
        self._last = 0.0

    async def wait(self, rps: float) -> None:
        if rps <= 0:
            return
        # lazily bound to whichever loop is running
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            delay = self._last + 1.0 / rps - time.time()
            if delay > 0:
                await asyncio.sleep(delay)
            self._last = time.time()


_CIRCUIT = CircuitBreaker()
_LIMITER = RateLimiter()


def reset_circuit() -> None:
    global _CIRCUIT, _LIMITER
    _CIRCUIT = CircuitBreaker()
    _LIMITER = RateLimiter()


def circuit_snapshot(policy: RetryPolicy | None = None) -> dict[str, Any]:
    policy = policy or RetryPolicy.from_settings()
    return {"fails": _CIRCUIT.fails, "open": _CIRCUIT.is_open(policy.circuit_reset_s)}


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS
    return isinstance(exc, (httpx.TimeoutException, httpx.NetworkError))


async def resilient_request(
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    timeout_s: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    policy: RetryPolicy | None = None,
) -> httpx.Response:
    """
    Send one provider request under `policy`.

    Timeouts, network errors, 429 and 5xx are retried with capped exponential
    backoff; every attempt waits on the shared rate limiter. Other 4xx raise at once.
    Consecutive failures trip a shared circuit breaker, after which calls are
    refused with an httpx.HTTPError until the cool-down passes.
    """
    if policy is None:
        policy = RetryPolicy.from_settings(timeout_s=timeout_s)
    elif timeout_s is not None:
        policy = replace(policy, timeout_s=float(timeout_s))
    if _CIRCUIT.is_open(policy.circuit_reset_s):
        raise httpx.HTTPError(f"circuit_open: refusing external call to {url}")

    attempts = policy.max_retries + 1
    for attempt in range(attempts):
        await _LIMITER.wait(policy.rate_limit_rps)
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(policy.timeout_s), transport=transport) as client:
                resp = await client.request(method, url, headers=headers, params=params)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            if not _is_retryable(e):
                raise
            _CIRCUIT.record_failure(policy.circuit_fail_threshold)
            if attempt + 1 >= attempts:
                raise
            log.info("retrying %s %s attempt=%s error=%s", method, url, attempt + 1, type(e).__name__)
            await asyncio.sleep(policy.backoff(attempt))
        else:
            _CIRCUIT.record_success()
            return resp

    raise AssertionError("unreachable")

from __future__ import annotations

from typing import Any

import httpx
import structlog
from circuitbreaker import CircuitBreaker, CircuitBreakerError
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from netreconciler.core.deadline import Deadline
from netreconciler.core.errors import (
    ConflictError,
    FatalAPIError,
    NotFoundError,
    TransientAPIError,
)

logger = structlog.get_logger()

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})

# Failures raised before the request left the client.
_UNSENT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout)

# Statuses after which the server may already have acted on the request.
_AMBIGUOUS_STATUSES = frozenset({500, 502, 504})


class RetryableHTTPError(Exception):
    """HTTP errors that should be retried.

    ``may_have_applied`` is set when the server could have processed the
    request before failing; such requests are only repeated when idempotent.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
        may_have_applied: bool = False,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.may_have_applied = may_have_applied


def is_retryable_status(status_code: int) -> bool:
    """Determine if HTTP status code is retryable."""
    return status_code in (408, 429, 500, 502, 503, 504)


def _error_text(response: httpx.Response) -> str:
    """Best human-readable error text from a control-plane response."""
    try:
        payload = response.json()
    except ValueError:
        return response.text
    if isinstance(payload, dict):
        for field in ("message", "error", "detail"):
            value = payload.get(field)
            if isinstance(value, str) and value:
                return value
    return response.text


def _remote_id(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict):
        value = payload.get("conflict_id") or payload.get("device_id") or payload.get("resource_id")
        return str(value) if value else None
    return None


class BaseHTTPClient:
    """Base HTTP client with retry logic and circuit breaker.

    Network failures and 408/429/5xx responses are retried with exponential
    backoff; once exhausted they surface as TransientAPIError. Non-idempotent
    requests are not repeated once the server may have acted on them. 404
    maps to NotFoundError, 409 to ConflictError and any other 4xx to
    FatalAPIError, always keeping the platform's raw error text.

    Backoff sleeps go through the call's deadline, and every attempt gets a
    timeout no longer than the time the deadline has left. Each client owns
    its circuit breaker.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_factor: float = 2.0,
        failure_threshold: int = 5,
        recovery_timeout: float = 60,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max(max_retries, 1)
        self._backoff_factor = backoff_factor
        self._breaker = CircuitBreaker(
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
            expected_exception=RetryableHTTPError,
            name=f"{type(self).__name__}@{self._base_url}#{id(self):x}",
        )
        self._guarded_request = self._breaker(self._request)

    def _headers(self) -> dict[str, str]:
        """Override to provide custom headers."""
        return {"Content-Type": "application/json"}

    def _effective_timeout(self, deadline: Deadline) -> float:
        deadline.check()
        remaining = deadline.remaining()
        if remaining is None:
            return self._timeout
        return min(self._timeout, remaining)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        deadline: Deadline | None = None,
        operation: str | None = None,
        key: Any = None,
    ) -> dict[str, Any]:
        """Execute a request, translating failures into the API error taxonomy."""
        deadline = deadline or Deadline.never()
        deadline.check(operation)
        try:
            return await self._guarded_request(method, path, params=params, json=json, deadline=deadline)
        except RetryableHTTPError as exc:
            raise TransientAPIError(
                str(exc),
                operation=operation,
                key=key,
                remote_error=exc.body or str(exc),
                status_code=exc.status_code,
            ) from exc
        except CircuitBreakerError as exc:
            raise TransientAPIError(
                f"Control-plane circuit open: {exc}",
                operation=operation,
                key=key,
            ) from exc
        except (NotFoundError, FatalAPIError) as exc:
            raise exc.with_context(operation=operation or f"{method} {path}", key=key)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        deadline: Deadline,
    ) -> dict[str, Any]:
        """Execute HTTP request with deadline-aware retries."""
        idempotent = method.upper() in IDEMPOTENT_METHODS

        def should_retry(exc: BaseException) -> bool:
            if not isinstance(exc, RetryableHTTPError):
                return False
            return idempotent or not exc.may_have_applied

        async for attempt in AsyncRetrying(
            sleep=deadline.sleep,
            retry=retry_if_exception(should_retry),
            stop=stop_after_attempt(self._max_retries),
            wait=wait_exponential(multiplier=self._backoff_factor, min=0, max=30),
            reraise=True,
        ):
            with attempt:
                timeout = self._effective_timeout(deadline)
                return await self._send(method, path, params=params, json=json, timeout=timeout)
        raise AssertionError("unreachable")  # pragma: no cover

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None,
        json: dict[str, Any] | None,
        timeout: float,
    ) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers=self._headers(),
                )
        except httpx.TransportError as exc:
            logger.warning("http_network_error", method=method, url=url, error=str(exc))
            raise RetryableHTTPError(
                f"{type(exc).__name__}: {exc}",
                may_have_applied=not isinstance(exc, _UNSENT_ERRORS),
            ) from exc

        status = response.status_code
        if is_retryable_status(status):
            logger.warning("http_retryable_error", status=status, method=method, url=url)
            raise RetryableHTTPError(
                f"HTTP {status}: {response.text}",
                status_code=status,
                body=_error_text(response),
                may_have_applied=status in _AMBIGUOUS_STATUSES,
            )

        if status >= 400:
            text = _error_text(response)
            logger.error("http_permanent_error", status=status, method=method, url=url, error=text)
            if status == 404:
                raise NotFoundError(text, remote_error=text, status_code=status)
            if status == 409:
                raise ConflictError(
                    text,
                    remote_error=text,
                    remote_id=_remote_id(response),
                    status_code=status,
                )
            raise FatalAPIError(text, remote_error=text, status_code=status)

        return response.json() if response.content else {}

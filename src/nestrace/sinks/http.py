"""HTTP collector sink: POSTs each event as JSON, with tenacity retry.

Transient failures (429, 5xx, connection errors) are retried with
exponential backoff; anything else fails the event immediately. A
failed event surfaces as :class:`~nestrace.exceptions.SinkError`, which
the emitter logs and skips.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

import httpx
import tenacity

from nestrace.exceptions import SinkClosedError, SinkError

if TYPE_CHECKING:
    from nestrace.models.events import CapturedEvent

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


def _is_retryable(exc: BaseException) -> bool:
    """Check if a delivery failure is worth retrying.

    Retryable: 429, 500, 502, 503, 504, connection errors and timeouts.
    Not retryable: other client errors (400, 401, 403, 404, ...).
    """
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in _RETRYABLE_STATUS_CODES
    return isinstance(exc, (httpx.ConnectError, httpx.TimeoutException))


class HttpEventSink:
    """Delivers events to a remote collector endpoint.

    Usage::

        sink = HttpEventSink("https://collector.internal/v1/events")
        with NestedTracer(sinks=[sink]) as tracer:
            ...

    Args:
        url: Collector endpoint receiving one JSON event per POST.
        headers: Extra request headers (e.g. authorization).
        timeout: Request timeout in seconds.
        max_retries: Maximum delivery attempts per event.
        wait: tenacity wait strategy; defaults to exponential backoff
            with jitter.
        transport: Optional httpx transport (tests use ``MockTransport``).
    """

    name = "http"

    def __init__(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        max_retries: int = 3,
        wait: Any = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self._url = url
        self._max_retries = max_retries
        self._wait = wait if wait is not None else (
            tenacity.wait_exponential(multiplier=1, min=1, max=30)
            + tenacity.wait_random(0, 2)
        )
        client_kwargs: dict[str, Any] = {
            "timeout": timeout,
            "headers": {"Content-Type": "application/json", **(headers or {})},
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.Client(**client_kwargs)
        self._lock = threading.Lock()
        self._closed = False
        self._delivered = 0

    @property
    def url(self) -> str:
        return self._url

    @property
    def delivered(self) -> int:
        """Number of events the collector accepted."""
        return self._delivered

    def accept(self, event: CapturedEvent) -> None:
        """POST one event, retrying transient failures.

        Raises:
            SinkClosedError: If the sink was closed.
            SinkError: If delivery failed after all attempts.
        """
        if self._closed:
            raise SinkClosedError(self.name)
        retryer = tenacity.Retrying(
            retry=tenacity.retry_if_exception(_is_retryable),
            wait=self._wait,
            stop=tenacity.stop_after_attempt(self._max_retries),
            before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            retryer(self._post, event.to_dict())
        except httpx.HTTPError as exc:
            raise SinkError(self.name, f"POST {self._url} failed: {exc}") from exc
        with self._lock:
            self._delivered += 1

    def _post(self, payload: dict[str, Any]) -> None:
        """Single delivery attempt (no retry)."""
        response = self._client.post(self._url, json=payload)
        response.raise_for_status()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._client.close()

    def __enter__(self) -> HttpEventSink:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

"""
Async client for the /api surface.

- ``query``: POST /api/query with exponential backoff between attempts
  (``backoff_delay``), retry state local to each call.
- Connection monitoring: one health probe immediately, then every
  ``check_interval`` seconds until ``cleanup()``.
- ``on_connection_change``: listeners get the boolean result of every probe
  (repeats included). A failing listener is logged and skipped.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from typing import Any, TypeVar

import httpx

from .status import ConnectivityState

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[bool], None]
SleepFn = Callable[[float], Awaitable[Any]]

DEFAULT_BASE_URL = "http://localhost:8080/api"
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 1.0  # seconds
DEFAULT_MAX_RETRY_DELAY = 10.0  # seconds
DEFAULT_CHECK_INTERVAL = 30.0  # seconds
DEFAULT_TIMEOUT = 30.0  # seconds


class ClientError(Exception):
    """A request failed (after retries, for ``query``)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def backoff_delay(attempt: int, base: float, cap: float) -> float:
    """Delay before retry number *attempt* (1-based): base * 2**(attempt-1), capped."""
    return min(base * 2 ** (attempt - 1), cap)


class DatabaseClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        max_retry_delay: float = DEFAULT_MAX_RETRY_DELAY,
        check_interval: float = DEFAULT_CHECK_INTERVAL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.max_retry_delay = max_retry_delay
        self.check_interval = check_interval
        self._sleep = sleep
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )
        self._listeners: set[Listener] = set()
        self._monitor_task: asyncio.Task[None] | None = None
        self.state = ConnectivityState()

    async def __aenter__(self) -> "DatabaseClient":
        self.start_monitoring()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def query(self, text: str, params: Sequence[Any] | None = None) -> dict[str, Any]:
        """
        Run *text* on the server; returns ``{rows, rowCount, fields}``.

        Retries up to ``max_retries`` times; raises ClientError with the last
        failure's message once they are used up.
        """

        async def _post() -> dict[str, Any]:
            body: dict[str, Any] = {"text": text}
            if params is not None:
                body["params"] = list(params)
            response = await self._http.post("/query", json=body)
            if response.is_error:
                try:
                    data = response.json()
                except ValueError:
                    data = None
                message = data.get("message") if isinstance(data, dict) else None
                raise ClientError(
                    message or f"Query failed with status {response.status_code}",
                    status_code=response.status_code,
                )
            return response.json()

        return await self._retry(_post)

    async def _retry(self, operation: Callable[[], Awaitable[T]]) -> T:
        attempt = 0
        while True:
            try:
                return await operation()
            except (ClientError, httpx.HTTPError, ValueError) as e:
                if attempt >= self.max_retries:
                    if isinstance(e, ClientError):
                        raise
                    raise ClientError(str(e) or e.__class__.__name__) from e
                attempt += 1
                delay = backoff_delay(attempt, self.retry_delay, self.max_retry_delay)
                logger.warning(
                    "Request failed (%s); retry %d/%d in %.2fs",
                    e,
                    attempt,
                    self.max_retries,
                    delay,
                )
                await self._sleep(delay)

    # ------------------------------------------------------------------
    # Connection monitoring
    # ------------------------------------------------------------------

    def start_monitoring(self) -> None:
        """Probe now and then every ``check_interval`` seconds. Needs a running loop."""
        if self._monitor_task is not None and not self._monitor_task.done():
            return
        self._monitor_task = asyncio.get_running_loop().create_task(self._monitor())

    async def _monitor(self) -> None:
        while True:
            await self.check_connection()
            await self._sleep(self.check_interval)

    async def check_connection(self) -> bool:
        """Probe GET /api/health once, update ``state`` and notify listeners."""
        now = datetime.now(timezone.utc)
        try:
            response = await self._http.get("/health")
            data = response.json()
            if not isinstance(data, dict):
                raise ValueError("Unexpected health response")
            connected = data.get("database") == "connected"
            error = None if connected else str(data.get("error") or "Database disconnected")
        except (httpx.HTTPError, ValueError) as e:
            logger.debug("Health probe failed: %s", e)
            connected = False
            error = str(e) or e.__class__.__name__

        self.state = self.state.updated(connected, error=error, at=now)
        self._notify(connected)
        return connected

    def on_connection_change(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; the returned callable removes exactly it."""
        self._listeners.add(listener)

        def unsubscribe() -> None:
            self._listeners.discard(listener)

        return unsubscribe

    def _notify(self, connected: bool) -> None:
        for listener in list(self._listeners):
            try:
                listener(connected)
            except Exception:
                logger.exception("Connection listener %r failed", listener)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def cleanup(self) -> None:
        """Stop the periodic probe and drop all listeners. Safe to call repeatedly."""
        task, self._monitor_task = self._monitor_task, None
        if task is not None and not task.done():
            task.cancel()
        self._listeners.clear()

    async def aclose(self) -> None:
        """cleanup() and close the HTTP client."""
        task = self._monitor_task
        self.cleanup()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._http.aclose()

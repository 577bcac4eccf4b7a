"""Fire-and-forget tracking beacon delivery with retry and group cancellation."""

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable
from enum import Enum

import httpx

from .config import BeaconConfig
from .events import PlaybackLogEvents
from .http_client_manager import get_beacon_http_client
from .log_config import LogCategory, get_context_logger
from .metrics import MetricLabels, MetricsCollector, NoOpMetrics, PlaybackMetrics
from .types import AdDocument


# Transient transport failures: timeouts, DNS / refused / offline (ConnectError),
# connection lost mid-request (ReadError, WriteError, RemoteProtocolError)
TRANSIENT_NETWORK_ERRORS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


class BeaconOutcome(str, Enum):
    """Final result of delivering one beacon."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


class BeaconDispatcher:
    """Sends tracking beacons as independent background tasks.

    Each beacon is an HTTP GET retried on transient failures with
    exponential backoff. Outcomes are logged and counted, never raised.
    Attempts of one beacon run sequentially; ordering across beacons is not
    guaranteed.

    Example:
        >>> dispatcher = BeaconDispatcher()
        >>> dispatcher.fire("https://t.example.com/start", "start")
        >>> await dispatcher.wait_idle()
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        config: BeaconConfig | None = None,
        metrics: MetricsCollector | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        self.client = client
        self.config = config or BeaconConfig()
        self.metrics = metrics or NoOpMetrics()
        self._sleep = sleep or asyncio.sleep
        self._tasks: set[asyncio.Task] = set()
        self.logger = get_context_logger("beacon_dispatcher", LogCategory.BEACON)

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    def _get_client(self) -> httpx.AsyncClient:
        if self.client is None:
            self.client = get_beacon_http_client(timeout=self.config.timeout)
        return self.client

    async def send(self, url: str, event_type: str) -> BeaconOutcome:
        """Deliver one beacon, retrying transient failures.

        Args:
            url: Beacon URL
            event_type: Tracking event name, used for logs and metric labels

        Returns:
            BeaconOutcome describing the final result

        Raises:
            asyncio.CancelledError: If the delivery task is cancelled
        """
        labels = {MetricLabels.EVENT_TYPE: event_type}
        headers = {"User-Agent": self.config.user_agent}
        attempt = 0

        while True:
            attempt += 1
            retryable = False
            status_code = None
            error = None
            start_time = time.perf_counter()

            try:
                response = await self._get_client().get(
                    url, timeout=self.config.timeout, headers=headers
                )
                status_code = response.status_code
                if 200 <= status_code < 300:
                    self.logger.info(
                        PlaybackLogEvents.BEACON_SUCCEEDED,
                        event_type=event_type,
                        status_code=status_code,
                        attempt=attempt,
                    )
                    self.metrics.increment(PlaybackMetrics.BEACON_SENT, labels=labels)
                    return BeaconOutcome.SUCCEEDED
                retryable = self.config.is_retryable_status(status_code)
            except asyncio.CancelledError:
                self._log_cancelled(event_type, attempt)
                raise
            except TRANSIENT_NETWORK_ERRORS as e:
                retryable = True
                error = f"{type(e).__name__}: {e}"
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                error = f"{type(e).__name__}: {e}"
            finally:
                self.metrics.timing(
                    PlaybackMetrics.BEACON_REQUEST_DURATION_MS,
                    (time.perf_counter() - start_time) * 1000,
                    labels=labels,
                )

            if not retryable:
                self.logger.warning(
                    PlaybackLogEvents.BEACON_FAILED,
                    event_type=event_type,
                    status_code=status_code,
                    error=error,
                    attempt=attempt,
                    url=url[:100],
                )
                self._count_failure(labels, BeaconOutcome.FAILED)
                return BeaconOutcome.FAILED

            if attempt >= self.config.max_attempts:
                self.logger.warning(
                    PlaybackLogEvents.BEACON_FAILED,
                    event_type=event_type,
                    status_code=status_code,
                    error=error,
                    attempts=attempt,
                    reason="retries exhausted",
                    url=url[:100],
                )
                self._count_failure(labels, BeaconOutcome.EXHAUSTED)
                return BeaconOutcome.EXHAUSTED

            delay = self.config.backoff_delay(attempt)
            self.logger.debug(
                PlaybackLogEvents.BEACON_RETRY_SCHEDULED,
                event_type=event_type,
                status_code=status_code,
                error=error,
                attempt=attempt,
                delay=delay,
            )
            self.metrics.increment(PlaybackMetrics.BEACON_RETRIED, labels=labels)
            try:
                await self._sleep(delay)
            except asyncio.CancelledError:
                self._log_cancelled(event_type, attempt)
                raise

    def fire(self, url: str, event_type: str) -> asyncio.Task | None:
        """Schedule a beacon in the background and return immediately.

        Returns:
            The delivery task, or None when no event loop is running
        """
        try:
            task = asyncio.get_running_loop().create_task(self._deliver(url, event_type))
        except RuntimeError:
            self.logger.warning(
                "Beacon dropped, no running event loop", event_type=event_type
            )
            return None
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self.metrics.gauge(PlaybackMetrics.SESSION_ACTIVE_BEACONS, len(self._tasks))
        return task

    async def _deliver(self, url: str, event_type: str) -> None:
        try:
            await self.send(url, event_type)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.error(
                PlaybackLogEvents.BEACON_FAILED,
                event_type=event_type,
                error=str(e),
                error_type=type(e).__name__,
            )

    def fire_all(self, urls: Iterable[str], event_type: str) -> None:
        """Fire every URL independently; duplicates are sent twice."""
        for url in urls:
            self.fire(url, event_type)

    def fire_optional(self, url: str | None, event_type: str) -> None:
        """Fire ``url`` if present; a missing URL is logged, not an error."""
        if not url:
            self.logger.warning(PlaybackLogEvents.BEACON_URL_MISSING, event_type=event_type)
            return
        self.fire(url, event_type)

    def fire_tracking_event(self, document: AdDocument | None, event_type: str) -> None:
        """Fire the document's tracking beacon for ``event_type``."""
        url = document.tracking_events.get(event_type) if document else None
        self.fire_optional(url, event_type)

    def fire_impressions(self, document: AdDocument) -> None:
        self.fire_all(document.impression_urls, "impression")

    def fire_click_tracking(self, document: AdDocument) -> None:
        self.fire_all(document.click_tracking_urls, "click")

    def cancel_all(self) -> int:
        """Cancel every in-flight and backing-off beacon.

        Returns:
            Number of tasks cancelled
        """
        tasks = [task for task in self._tasks if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            self.logger.debug("Cancelled pending beacons", count=len(tasks))
        return len(tasks)

    async def wait_idle(self) -> None:
        """Wait until every scheduled beacon has finished or been cancelled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _log_cancelled(self, event_type: str, attempt: int) -> None:
        self.logger.debug(
            PlaybackLogEvents.BEACON_CANCELLED, event_type=event_type, attempt=attempt
        )
        self.metrics.increment(
            PlaybackMetrics.BEACON_CANCELLED, labels={MetricLabels.EVENT_TYPE: event_type}
        )

    def _count_failure(self, labels: dict[str, str], outcome: BeaconOutcome) -> None:
        self.metrics.increment(
            PlaybackMetrics.BEACON_FAILED,
            labels={**labels, MetricLabels.RESULT: outcome.value},
        )


__all__ = ["BeaconDispatcher", "BeaconOutcome", "TRANSIENT_NETWORK_ERRORS"]

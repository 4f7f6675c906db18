"""Subscription-driven poller feeding the data store.

The poller keeps the set of metrics panels currently ask for, fetches their
values in one batched call per tick and writes the results into a
:class:`~pmpoller.adapters.storage.datastore.DataStore`. Metrics nobody asked
for within ``max_age_ms`` are dropped by an explicit expiry sweep.
"""

import asyncio
import contextlib
import time
from collections.abc import Callable, Iterable

from pmpoller.adapters.logging import get_logger
from pmpoller.adapters.storage.datastore import DataStore
from pmpoller.core.config import PollerConfig
from pmpoller.core.exceptions import PollerError
from pmpoller.core.ingest import parse_fetch_response
from pmpoller.core.models import PollStats, Subscription
from pmpoller.core.ports import MetricsContextPort

logger = get_logger(__name__)


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class Poller:
    """Periodically fetches subscribed metrics into a data store.

    All subscription changes and data store writes happen on the event loop
    the poller runs on. At most one poll is in flight; concurrent callers of
    :meth:`poll` share the result of the poll already running.

    Args:
        context: Remote metrics API used for metadata and value fetches.
        datastore: Store receiving fetched samples.
        max_age_ms: Metrics not requested for this long stop being polled.
        refresh_interval_ms: Delay between ticks of the polling loop.
        clock: Returns a monotonic time in milliseconds.
    """

    def __init__(
        self,
        context: MetricsContextPort,
        datastore: DataStore,
        max_age_ms: int,
        refresh_interval_ms: int = 1000,
        clock: Callable[[], float] = _monotonic_ms,
    ) -> None:
        self._context = context
        self._datastore = datastore
        self.max_age_ms = max_age_ms
        self.refresh_interval_ms = refresh_interval_ms
        self._clock = clock
        self._subscriptions: dict[str, Subscription] = {}
        self._inflight: asyncio.Future[PollStats] | None = None
        self._inflight_names: set[str] = set()
        self._task: asyncio.Task[None] | None = None

    @classmethod
    def from_config(
        cls,
        context: MetricsContextPort,
        datastore: DataStore,
        config: PollerConfig,
    ) -> "Poller":
        return cls(
            context,
            datastore,
            max_age_ms=config.max_age_ms,
            refresh_interval_ms=config.refresh_interval_ms,
        )

    @property
    def subscribed_metrics(self) -> list[str]:
        """Names of the metrics currently being polled."""
        return list(self._subscriptions)

    def get_subscription(self, name: str) -> Subscription | None:
        return self._subscriptions.get(name)

    async def ensure_polling(self, names: Iterable[str]) -> list[str]:
        """Start or keep polling ``names``.

        Every listed metric has its last-requested time refreshed. Metadata
        is looked up once, in a single call, for metrics that do not have it
        cached yet.

        Returns:
            Names that were not subscribed before this call.

        Raises:
            FetchError: If the metadata lookup fails. The subscriptions stay
                active and the lookup is retried on the next call.
        """
        now = self._clock()
        added: list[str] = []
        missing_metadata: list[str] = []
        for name in names:
            subscription = self._subscriptions.get(name)
            if subscription is None:
                subscription = Subscription(name=name, last_requested_at=now)
                self._subscriptions[name] = subscription
                added.append(name)
                logger.debug("Started polling metric %s", name)
            else:
                subscription.last_requested_at = now
            if not subscription.has_metadata and name not in missing_metadata:
                missing_metadata.append(name)

        if not missing_metadata:
            return added

        metadata = await self._context.find_metric_metadata(missing_metadata)
        for name in missing_metadata:
            subscription = self._subscriptions.get(name)
            # removed while the lookup was pending
            if subscription is None:
                continue
            subscription.metadata = metadata.get(name) if metadata else None
            subscription.has_metadata = True
        return added

    def remove_metrics_from_polling(self, names: Iterable[str]) -> None:
        """Stop polling ``names`` immediately."""
        for name in names:
            if self._subscriptions.pop(name, None) is not None:
                logger.debug("Stopped polling metric %s", name)

    def cleanup_expired_metrics(self) -> list[str]:
        """Drop subscriptions not requested within ``max_age_ms``.

        Returns:
            Names of the metrics that were dropped.
        """
        oldest_allowed = self._clock() - self.max_age_ms
        expired = [
            name
            for name, subscription in self._subscriptions.items()
            if subscription.last_requested_at < oldest_allowed
        ]
        for name in expired:
            del self._subscriptions[name]
        if expired:
            logger.debug("Expired metrics: %s", ", ".join(expired))
        return expired

    async def poll(self) -> PollStats:
        """Fetch all subscribed metrics once and store the values.

        If a poll is already in flight and covers every subscribed metric,
        waits for it and returns its result instead of starting another
        fetch. Metrics subscribed after the running fetch started get a
        follow-up poll once it finishes.

        Raises:
            FetchError: If the fetch fails. Nothing is written to the store.
            MalformedSample: If the response has no usable timestamp.
        """
        inflight = self._inflight
        if inflight is not None and not inflight.done():
            if self._inflight_names.issuperset(self._subscriptions):
                return await asyncio.shield(inflight)
            # some metrics were subscribed after the running fetch started
            await asyncio.wait([inflight])

        if self._inflight is None or self._inflight.done():
            names = list(self._subscriptions)
            self._inflight_names = set(names)
            self._inflight = asyncio.ensure_future(self._poll_once(names))
        return await asyncio.shield(self._inflight)

    async def _poll_once(self, names: list[str]) -> PollStats:
        stats = PollStats(requested=names)
        if not names:
            logger.debug("No metrics subscribed, skipping fetch")
            return stats

        response = await self._context.fetch(names, True)
        samples, stats.skipped = parse_fetch_response(response)
        stats.inserted = self._datastore.ingest(samples)
        self._datastore.evict_expired()
        logger.debug(
            "Polled %d metrics: %d samples stored, %d skipped",
            len(names),
            stats.inserted,
            stats.skipped,
        )
        return stats

    def set_refresh_interval(self, refresh_interval_ms: int) -> None:
        """Change the delay used for the next tick of the polling loop."""
        if refresh_interval_ms <= 0:
            raise ValueError("refresh_interval_ms must be positive")
        if refresh_interval_ms != self.refresh_interval_ms:
            logger.debug("Refresh interval set to %d ms", refresh_interval_ms)
        self.refresh_interval_ms = refresh_interval_ms

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the polling loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        """Cancel the polling loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        while True:
            self.cleanup_expired_metrics()
            try:
                await self.poll()
            except PollerError as e:
                logger.warning("Poll failed, retrying next tick: %s", e)
            except Exception:
                logger.exception("Unexpected error while polling, retrying next tick")
            await asyncio.sleep(self.refresh_interval_ms / 1000)

"""Bounded in-memory storage for polled time series.

Samples are kept per metric and instance in time-ordered buffers. Samples
older than the retention window are evicted, which keeps memory usage
bounded no matter how long the data source runs.
"""

import math
import threading
import time
from collections import deque
from collections.abc import Callable, Iterable

from pmpoller.adapters.logging import get_logger
from pmpoller.core.models import IngestedSample, Sample, TimeSeriesResult

logger = get_logger(__name__)


def _wall_clock_ms() -> float:
    return time.time() * 1000


class DataStore:
    """Retention-windowed time series buffers keyed by metric and instance.

    Each buffer is strictly ascending by timestamp. Inserts that would not
    move a buffer forward in time are dropped, so late or duplicate batches
    never reorder stored data.

    Args:
        retention_time_ms: How long samples are kept, in milliseconds.
        clock: Returns the current wall-clock time in milliseconds.
    """

    def __init__(
        self,
        retention_time_ms: int,
        clock: Callable[[], float] = _wall_clock_ms,
    ) -> None:
        self.retention_time_ms = retention_time_ms
        self._clock = clock
        self._store: dict[str, dict[str | None, deque[Sample]]] = {}
        self._lock = threading.Lock()

    def _cutoff(self) -> float:
        return self._clock() - self.retention_time_ms

    @staticmethod
    def _evict(buffer: deque[Sample], cutoff: float) -> int:
        evicted = 0
        while buffer and buffer[0].timestamp_ms < cutoff:
            buffer.popleft()
            evicted += 1
        return evicted

    def insert(self, metric_name: str, instance_key: str | None, sample: Sample) -> bool:
        """Append a sample to the buffer of ``(metric_name, instance_key)``.

        Returns:
            True if the sample was stored, False if it was not newer than the
            last stored sample or already outside the retention window.
        """
        with self._lock:
            cutoff = self._cutoff()
            if sample.timestamp_ms < cutoff:
                return False
            instances = self._store.setdefault(metric_name, {})
            buffer = instances.setdefault(instance_key, deque())
            if buffer and sample.timestamp_ms <= buffer[-1].timestamp_ms:
                return False
            buffer.append(sample)
            self._evict(buffer, cutoff)
            return True

    def ingest(self, samples: Iterable[IngestedSample]) -> int:
        """Insert a batch of parsed samples.

        Returns:
            Number of samples stored.
        """
        inserted = 0
        for item in samples:
            if self.insert(item.metric, item.instance_key, item.sample):
                inserted += 1
        return inserted

    def query_time_series(
        self,
        names: Iterable[str],
        from_ms: float = -math.inf,
        to_ms: float = math.inf,
    ) -> list[TimeSeriesResult]:
        """Return stored series for ``names`` within ``[from_ms, to_ms]``.

        One result is returned per stored instance. The scalar instance is
        labelled with the metric name, other instances with
        ``<metric>-<instance>``. Unknown names are ignored.
        """
        results: list[TimeSeriesResult] = []
        with self._lock:
            for name in names:
                for key, buffer in self._store.get(name, {}).items():
                    results.append(
                        {
                            "target": name if key is None else f"{name}-{key}",
                            "datapoints": [
                                [sample.value, sample.timestamp_ms]
                                for sample in buffer
                                if from_ms <= sample.timestamp_ms <= to_ms
                            ],
                        }
                    )
        return results

    def evict_expired(self) -> int:
        """Drop expired samples from every buffer, and empty buffers.

        Returns:
            Number of samples removed.
        """
        evicted = 0
        with self._lock:
            cutoff = self._cutoff()
            for name in list(self._store):
                instances = self._store[name]
                for key in list(instances):
                    evicted += self._evict(instances[key], cutoff)
                    if not instances[key]:
                        del instances[key]
                if not instances:
                    del self._store[name]
        if evicted:
            logger.debug("Evicted %d expired samples", evicted)
        return evicted

    def has_data(self, name: str) -> bool:
        """Return True if any sample is stored for ``name``."""
        with self._lock:
            return any(self._store.get(name, {}).values())

    def metric_names(self) -> list[str]:
        """Return the names of all metrics with stored buffers."""
        with self._lock:
            return list(self._store)

    def clear(self) -> None:
        """Remove all stored samples."""
        with self._lock:
            self._store.clear()

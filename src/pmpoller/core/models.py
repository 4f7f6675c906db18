"""Core domain models for polled metric data."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypedDict

SampleValue = int | float | str
Datapoint = list[Any]


class TargetFormat(str, Enum):
    """Presentation shape requested by a panel query."""

    TIME_SERIES = "time_series"
    HEATMAP = "heatmap"
    TABLE = "table"


@dataclass(frozen=True)
class Sample:
    """A single observation of one metric instance.

    Attributes:
        value: Numeric value, or text for string metrics.
        timestamp_ms: Unix timestamp in milliseconds.
    """

    value: SampleValue
    timestamp_ms: int


@dataclass
class Subscription:
    """A metric name under active polling.

    Attributes:
        name: Metric name (e.g., kernel.all.load).
        last_requested_at: Monotonic timestamp in milliseconds of the last
            time a caller asked to keep polling this metric.
        metadata: Metric metadata as returned by the remote API.
        has_metadata: True once metadata has been fetched and cached.
    """

    name: str
    last_requested_at: float
    metadata: Any = None
    has_metadata: bool = False


class TimeSeriesResult(TypedDict):
    target: str
    datapoints: list[Datapoint]


class TableColumn(TypedDict):
    text: str


class TableResult(TypedDict):
    columns: list[TableColumn]
    rows: list[list[str]]
    type: str


class MetricFindValue(TypedDict):
    text: str


class DataSourceStatus(TypedDict):
    """Outcome of a data source health check."""

    status: str
    message: str


@dataclass
class Target:
    """A single panel query.

    Attributes:
        expr: Metric name to query.
        ref_id: Panel-local query identifier.
        format: Requested output shape.
        legend_format: Label template, empty to keep the raw target.
        hide: Hidden queries are not polled or returned.
        hostspec: Host specification after template substitution, used to
            drop queries whose container filter expanded to nothing.
    """

    expr: str
    ref_id: str = "A"
    format: TargetFormat | str = TargetFormat.TIME_SERIES
    legend_format: str = ""
    hide: bool = False
    hostspec: str = ""


@dataclass(frozen=True)
class IngestedSample:
    """A parsed sample addressed to its time series buffer."""

    metric: str
    instance_key: str | None
    sample: Sample


@dataclass
class PollStats:
    """Counters for a single poll cycle."""

    requested: list[str] = field(default_factory=list)
    inserted: int = 0
    skipped: int = 0

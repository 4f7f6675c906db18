"""pmpoller - polling and caching engine for Performance Co-Pilot metrics.

Fetches subscribed metrics from pmproxy on a fixed cadence, keeps them in a
bounded in-memory store and answers dashboard range queries.
"""

from pmpoller.adapters.datasource import PmapiDataSource
from pmpoller.adapters.logging import get_logger
from pmpoller.adapters.pmapi import PmApiClient
from pmpoller.adapters.poller import Poller
from pmpoller.adapters.storage.datastore import DataStore
from pmpoller.adapters.templating import GrafanaTemplateRenderer
from pmpoller.core.config import PollerConfig
from pmpoller.core.exceptions import (
    FetchError,
    InvalidFormat,
    MalformedSample,
    PollerError,
)
from pmpoller.core.models import (
    DataSourceStatus,
    MetricFindValue,
    Sample,
    TableResult,
    Target,
    TargetFormat,
    TimeSeriesResult,
)
from pmpoller.core.transformations import Transformations

__all__ = [
    "DataSourceStatus",
    "DataStore",
    "FetchError",
    "GrafanaTemplateRenderer",
    "InvalidFormat",
    "MalformedSample",
    "MetricFindValue",
    "PmApiClient",
    "PmapiDataSource",
    "Poller",
    "PollerConfig",
    "PollerError",
    "Sample",
    "TableResult",
    "Target",
    "TargetFormat",
    "TimeSeriesResult",
    "Transformations",
    "get_logger",
]

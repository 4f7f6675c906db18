"""Query entry point tying poller, data store and transformations together."""

import math
import re
from collections.abc import Iterable, Mapping
from typing import Any

from pmpoller.adapters.logging import get_logger
from pmpoller.adapters.poller import Poller
from pmpoller.adapters.storage.datastore import DataStore
from pmpoller.adapters.templating import GrafanaTemplateRenderer
from pmpoller.core.config import PollerConfig
from pmpoller.core.exceptions import MalformedSample, PollerError
from pmpoller.core.intervals import interval_to_ms
from pmpoller.core.models import (
    DataSourceStatus,
    MetricFindValue,
    TableResult,
    Target,
    TimeSeriesResult,
)
from pmpoller.core.ports import MetricsContextPort, TemplateRendererPort
from pmpoller.core.transformations import Transformations

logger = get_logger(__name__)

QueryResult = TimeSeriesResult | TableResult

VERSION_METRIC = "pmcd.version"

# "container=" followed by nothing: an empty template variable, which the
# daemon would otherwise answer with values for every cgroup
_EMPTY_CONTAINER_RE = re.compile(r"container=(&|$)")


def filter_target(target: Target) -> bool:
    """Return True if ``target`` should be polled and returned."""
    return not (
        target.hide
        or not target.expr.strip()
        or _EMPTY_CONTAINER_RE.search(target.hostspec)
    )


def _instances_of(response: Mapping[str, Any], name: str) -> list[Mapping[str, Any]]:
    values = response.get("values")
    if not isinstance(values, list) or not values or not isinstance(values[0], Mapping):
        raise MalformedSample(f"No values returned for metric '{name}'", metric=name)
    instances = values[0].get("instances")
    if not isinstance(instances, list):
        raise MalformedSample(f"No instances returned for metric '{name}'", metric=name)
    return [instance for instance in instances if isinstance(instance, Mapping)]


class PmapiDataSource:
    """Answers dashboard queries from locally polled metric values.

    Each query subscribes its metrics for polling, reads the requested time
    range from the data store and shapes the result per target format.

    Example:
        ```python
        async with PmapiDataSource(PmApiClient("http://localhost:44322")) as ds:
            data = await ds.query([Target(expr="kernel.all.load")], 0, math.inf)
        ```
    """

    def __init__(
        self,
        context: MetricsContextPort,
        config: PollerConfig | None = None,
        template_renderer: TemplateRendererPort | None = None,
    ) -> None:
        self.context = context
        self.config = config or PollerConfig()
        self.template_renderer = template_renderer or GrafanaTemplateRenderer()
        self.datastore = DataStore(self.config.retention_time_ms)
        self.poller = Poller.from_config(context, self.datastore, self.config)
        self.transformations = Transformations(self.template_renderer)

    @classmethod
    def from_json_data(
        cls, context: MetricsContextPort, json_data: Mapping[str, Any]
    ) -> "PmapiDataSource":
        return cls(context, PollerConfig.from_json_data(json_data))

    async def __aenter__(self) -> "PmapiDataSource":
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    def start(self) -> None:
        self.poller.start()

    async def stop(self) -> None:
        await self.poller.stop()
        aclose = getattr(self.context, "aclose", None)
        if aclose is not None:
            await aclose()

    async def query(
        self,
        targets: Iterable[Target],
        from_ms: float = -math.inf,
        to_ms: float = math.inf,
        dashboard_refresh: str | None = None,
    ) -> list[QueryResult]:
        """Return data for ``targets`` within ``[from_ms, to_ms]``.

        Args:
            targets: Panel queries; hidden and blank ones are ignored.
            from_ms: Lower bound of the time range in milliseconds.
            to_ms: Upper bound of the time range in milliseconds.
            dashboard_refresh: Dashboard refresh interval (e.g. ``"5s"``),
                used as the polling cadence when given.

        Raises:
            FetchError: If the metadata lookup or the initial poll fails.
            InvalidFormat: If a target asks for an unknown format.
        """
        if dashboard_refresh:
            self.poller.set_refresh_interval(interval_to_ms(dashboard_refresh))

        active = [target for target in targets if filter_target(target)]
        names = list(dict.fromkeys(target.expr.strip() for target in active))
        if not names:
            return []

        added = await self.poller.ensure_polling(names)
        # metrics already subscribed are left to the polling loop
        if any(not self.datastore.has_data(name) for name in added):
            await self.poller.poll()

        data: list[QueryResult] = []
        for target in active:
            series = self.datastore.query_time_series(
                [target.expr.strip()], from_ms, to_ms
            )
            data.extend(self.transformations.transform(series, target))

        logger.debug("query %s returned %d results", names, len(data))
        return data

    async def metric_find_query(
        self, query: str, scoped_vars: Mapping[str, Mapping[str, Any]] | None = None
    ) -> list[MetricFindValue]:
        """Return the current instance values of a metric for a template variable.

        Raises:
            FetchError: If the fetch fails.
            MalformedSample: If the response carries no values for the metric.
        """
        name = self.template_renderer.replace(query.strip(), scoped_vars or {})
        response = await self.context.fetch([name], True)
        return [
            {"text": str(instance.get("value"))}
            for instance in _instances_of(response, name)
        ]

    async def test_datasource(self) -> DataSourceStatus:
        """Check that the metrics daemon answers, reporting its version."""
        try:
            response = await self.context.fetch([VERSION_METRIC], True)
            instances = _instances_of(response, VERSION_METRIC)
            if not instances:
                raise MalformedSample(
                    f"No instances returned for metric '{VERSION_METRIC}'",
                    metric=VERSION_METRIC,
                )
        except PollerError as e:
            logger.warning("Data source test failed: %s", e)
            return {
                "status": "error",
                "message": f"{e}. Please check the URL and host specification "
                "in the data source settings.",
            }
        return {
            "status": "success",
            "message": "Data source is working, using Performance Co-Pilot "
            f"{instances[0].get('value')}",
        }

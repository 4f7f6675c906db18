"""Step definitions for poller_subscriptions.feature."""

import asyncio
import math
from collections.abc import Coroutine
from dataclasses import dataclass, field
from typing import Any
from unittest.mock import AsyncMock

import pytest
from pytest_bdd import given, parsers, then, when

from pmpoller.adapters.poller import Poller
from pmpoller.adapters.storage.datastore import DataStore
from tests.helpers import FakeClock, fetch_response, scalar_metric


def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run a coroutine to completion from a synchronous step."""
    return asyncio.run(coro)


def split_names(names: str) -> list[str]:
    return [name.strip() for name in names.split(",") if name.strip()]


@dataclass
class PollerScenarioContext:
    """Shared state between steps in a poller scenario."""

    clock: FakeClock = field(default_factory=FakeClock)
    context: AsyncMock = field(default_factory=AsyncMock)
    datastore: DataStore = field(
        default_factory=lambda: DataStore(retention_time_ms=25_000, clock=lambda: 0.0)
    )
    poller: Poller | None = None

    def __post_init__(self) -> None:
        self.context.find_metric_metadata.return_value = {}
        self.context.fetch.return_value = fetch_response([])


@pytest.fixture
def ctx() -> PollerScenarioContext:
    """Fresh scenario context for each test."""
    return PollerScenarioContext()


@given(parsers.parse("a poller with a max age of {seconds:d} seconds"))
def given_poller(ctx: PollerScenarioContext, seconds: int) -> None:
    ctx.poller = Poller(
        ctx.context, ctx.datastore, max_age_ms=seconds * 1000, clock=ctx.clock
    )


@given(parsers.parse('the metrics "{names}" are subscribed'))
def given_subscribed(ctx: PollerScenarioContext, names: str) -> None:
    run_async(ctx.poller.ensure_polling(split_names(names)))


@given(
    parsers.parse(
        'the daemon reports "{name}" = {value:d} at {s:d} s {us:d} us'
    )
)
def given_daemon_reports(
    ctx: PollerScenarioContext, name: str, value: int, s: int, us: int
) -> None:
    ctx.context.fetch.return_value = fetch_response(
        [scalar_metric(name, value)], s=s, us=us
    )


@when(parsers.parse('the metrics "{names}" are requested again'))
def when_requested_again(ctx: PollerScenarioContext, names: str) -> None:
    run_async(ctx.poller.ensure_polling(split_names(names)))


@when(parsers.parse('the metrics "{names}" are removed from polling'))
def when_removed(ctx: PollerScenarioContext, names: str) -> None:
    ctx.poller.remove_metrics_from_polling(split_names(names))


@when(parsers.parse("{seconds:d} seconds pass"))
def when_time_passes(ctx: PollerScenarioContext, seconds: int) -> None:
    ctx.clock.advance(seconds * 1000)


@when("expired metrics are cleaned up")
def when_cleanup(ctx: PollerScenarioContext) -> None:
    ctx.poller.cleanup_expired_metrics()


@when("a poll cycle runs")
def when_poll(ctx: PollerScenarioContext) -> None:
    run_async(ctx.poller.poll())


@then(parsers.parse('the fetch requested exactly "{names}"'))
def then_fetch_requested(ctx: PollerScenarioContext, names: str) -> None:
    ctx.context.fetch.assert_awaited_once_with(split_names(names), True)


@then(parsers.parse('exactly the metrics "{names}" are subscribed'))
def then_subscribed(ctx: PollerScenarioContext, names: str) -> None:
    assert ctx.poller.subscribed_metrics == split_names(names)


@then(parsers.parse('the series "{name}" contains {value:d} at {timestamp:d} ms'))
def then_series_contains(
    ctx: PollerScenarioContext, name: str, value: int, timestamp: int
) -> None:
    result = ctx.datastore.query_time_series([name], 0, math.inf)
    assert result == [{"target": name, "datapoints": [[value, timestamp]]}]

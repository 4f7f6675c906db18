"""Helpers shared by unit, integration and feature tests."""

from typing import Any


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, now_ms: float = 0.0) -> None:
        self.now_ms = now_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> None:
        self.now_ms += ms


def fetch_response(
    values: list[dict[str, Any]], s: int = 5, us: int = 2000
) -> dict[str, Any]:
    """Build a fetch response in the shape pmproxy returns."""
    return {"timestamp": {"s": s, "us": us}, "values": values}


def scalar_metric(name: str, value: Any) -> dict[str, Any]:
    """A fetched metric without an instance domain."""
    return {
        "pmid": 633356298,
        "name": name,
        "instances": [{"instance": -1, "value": value, "instanceName": None}],
    }

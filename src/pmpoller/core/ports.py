"""Port interfaces for external collaborators.

These protocols define the contracts that the remote metrics API client and
the templating service must implement. The core depends only on these
interfaces, not on concrete implementations.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class MetricsContextPort(Protocol):
    """Port for the remote metrics API.

    Adapters implementing this protocol fetch metric metadata and values.
    Examples: PmApiClient.
    """

    async def find_metric_metadata(self, names: Sequence[str]) -> Mapping[str, Any]:
        """Look up metadata for the given metric names.

        Returns:
            Mapping of metric name to its metadata. Names the remote API
            does not know may be missing from the mapping.
        """
        ...

    async def fetch(self, names: Sequence[str], values_only: bool) -> Mapping[str, Any]:
        """Fetch current values for the given metric names.

        Args:
            names: Metric names to fetch.
            values_only: Skip instance-name lookups; metadata is already cached.

        Returns:
            Response shaped as
            ``{"timestamp": {"s": int, "us": int},
               "values": [{"name": str, "instances": [...]}]}``.
        """
        ...


@runtime_checkable
class TemplateRendererPort(Protocol):
    """Port for label templating."""

    def replace(self, text: str, scoped_vars: Mapping[str, Mapping[str, Any]]) -> str:
        """Substitute variables in ``text``.

        Args:
            text: Template containing variable placeholders.
            scoped_vars: Mapping of variable name to ``{"value": ...}``.
        """
        ...

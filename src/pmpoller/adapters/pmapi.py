"""httpx client for the pmproxy ``/pmapi`` REST endpoints.

Implements :class:`~pmpoller.core.ports.MetricsContextPort`. The client owns
a pmapi context on the remote side; when pmproxy forgets it (contexts expire
after ``polltimeout`` seconds without use) a new one is created and the
request retried once.
"""

from collections.abc import Mapping, Sequence
from typing import Any

import httpx

from pmpoller.adapters.logging import get_logger
from pmpoller.core.exceptions import FetchError

logger = get_logger(__name__)

DEFAULT_HOSTSPEC = "pcp://127.0.0.1"
DEFAULT_TIMEOUT_S = 10.0
DEFAULT_POLL_TIMEOUT_S = 30


class ContextExpired(FetchError):
    """pmproxy no longer knows the context identifier."""


class PmApiClient:
    """Remote metrics API client backed by ``httpx.AsyncClient``.

    Instance names of metrics with an instance domain are looked up while
    fetching metadata and cached, so value-only fetches can still label
    instances by name. Instances appearing later (new processes, disks)
    trigger a refresh of that metric's instance names.

    Args:
        url: Base URL of pmproxy, e.g. ``http://localhost:44322``.
        hostspec: Host specification the context connects to.
        timeout_s: Timeout applied to every HTTP request.
        poll_timeout_s: Seconds pmproxy keeps an unused context alive.
        client: Optional preconfigured client (used by tests).
    """

    def __init__(
        self,
        url: str,
        hostspec: str = DEFAULT_HOSTSPEC,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        poll_timeout_s: int = DEFAULT_POLL_TIMEOUT_S,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.hostspec = hostspec
        self.poll_timeout_s = poll_timeout_s
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._context: int | None = None
        self._instance_names: dict[str, dict[int, str]] = {}
        # instance ids the last indom lookup of a metric did not name
        self._unnamed_instances: dict[str, set[int]] = {}

    async def __aenter__(self) -> "PmApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: Mapping[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.get(f"{self.url}{path}", params=params)
        except httpx.HTTPError as e:
            raise FetchError(f"Request to {path} failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_error:
            message = body.get("message") if isinstance(body, dict) else None
            message = str(message or response.text or response.reason_phrase)
            if response.status_code == 403 and "context" in message.lower():
                raise ContextExpired(message, status_code=response.status_code)
            raise FetchError(
                f"{path} returned {response.status_code}: {message}",
                status_code=response.status_code,
            )
        if not isinstance(body, dict):
            raise FetchError(f"{path} returned an invalid JSON body")
        return body

    async def create_context(self) -> int:
        """Create a new pmapi context and remember it."""
        body = await self._get(
            "/pmapi/context",
            {"hostspec": self.hostspec, "polltimeout": self.poll_timeout_s},
        )
        context = body.get("context")
        if not isinstance(context, int):
            raise FetchError(f"pmproxy did not return a context: {body!r}")
        logger.debug("Created pmapi context %d for %s", context, self.hostspec)
        self._context = context
        return context

    async def _context_request(
        self, path: str, params: Mapping[str, Any]
    ) -> dict[str, Any]:
        if self._context is None:
            await self.create_context()
        try:
            return await self._get(path, {"context": self._context, **params})
        except ContextExpired:
            logger.info("pmapi context %s expired, creating a new one", self._context)
            await self.create_context()
            return await self._get(path, {"context": self._context, **params})

    async def find_instances(self, name: str) -> dict[int, str]:
        """Look up and cache the instance names of ``name``."""
        body = await self._context_request("/pmapi/indom", {"name": name})
        instances = {
            instance["instance"]: instance["name"]
            for instance in body.get("instances", [])
            if "instance" in instance and "name" in instance
        }
        self._instance_names[name] = instances
        return instances

    async def find_metric_metadata(self, names: Sequence[str]) -> dict[str, Any]:
        """Fetch metadata for ``names`` and cache instance names."""
        body = await self._context_request("/pmapi/metric", {"names": ",".join(names)})
        metadata = {
            metric["name"]: metric for metric in body.get("metrics", []) if "name" in metric
        }
        for name, metric in metadata.items():
            if metric.get("indom", "none") != "none":
                await self.find_instances(name)
        return metadata

    async def fetch(self, names: Sequence[str], values_only: bool) -> dict[str, Any]:
        """Fetch current values of ``names``.

        Instances are labelled from the instance name cache. A metric
        reporting an instance id the cache has not seen gets its instance
        names refreshed first. Unless ``values_only`` is set, the instance
        names of every metric with instances are refreshed.
        """
        body = await self._context_request("/pmapi/fetch", {"names": ",".join(names)})
        values = body.get("values")
        for metric in values if isinstance(values, list) else []:
            if not isinstance(metric, dict):
                continue
            name = metric.get("name")
            instances = metric.get("instances")
            if not name or not isinstance(instances, list):
                continue
            ids = {
                i.get("instance") for i in instances if isinstance(i, dict)
            } - {-1, None}
            known = self._instance_names.get(name, {})
            unseen = ids - known.keys() - self._unnamed_instances.get(name, set())
            if ids and (unseen or not values_only):
                known = await self.find_instances(name)
                self._unnamed_instances[name] = ids - known.keys()
            for instance in instances:
                if isinstance(instance, dict):
                    instance.setdefault("instanceName", known.get(instance.get("instance")))
        return body

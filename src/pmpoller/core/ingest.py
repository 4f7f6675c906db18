"""Parsing of fetch responses into samples ready for storage."""

import logging
import math
from collections.abc import Mapping
from typing import Any

from pmpoller.core.exceptions import MalformedSample
from pmpoller.core.models import IngestedSample, Sample, SampleValue

logger = logging.getLogger(__name__)

# Instance id the metrics daemon uses for metrics without an instance domain
SCALAR_INSTANCE = -1


def timestamp_to_ms(timestamp: Mapping[str, Any] | None) -> int:
    """Convert a ``{"s": ..., "us": ...}`` timestamp to milliseconds.

    Microseconds are rounded half up to the nearest millisecond.

    Raises:
        MalformedSample: If either field is missing or not numeric.
    """
    if not isinstance(timestamp, Mapping):
        raise MalformedSample(f"Missing fetch timestamp: {timestamp!r}")
    seconds = timestamp.get("s")
    micros = timestamp.get("us", 0)
    for part in (seconds, micros):
        if isinstance(part, bool) or not isinstance(part, (int, float)):
            raise MalformedSample(f"Invalid fetch timestamp: {dict(timestamp)!r}")
    return int(seconds * 1000 + math.floor(micros / 1000 + 0.5))


def instance_key(instance: Mapping[str, Any]) -> str | None:
    """Return the buffer key for a fetched instance.

    The scalar instance (id -1 or absent) maps to None. Other instances use
    their name when the response carries one, otherwise their numeric id.
    """
    instance_id = instance.get("instance")
    if instance_id is None or instance_id == SCALAR_INSTANCE:
        return None
    name = instance.get("instanceName")
    if name:
        return str(name)
    return str(instance_id)


def parse_value(metric: str, value: Any) -> SampleValue:
    """Validate a fetched value.

    Raises:
        MalformedSample: If the value is missing or not a number or string.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise MalformedSample(
            f"Invalid value {value!r} for metric '{metric}'", metric=metric
        )
    return value


def parse_fetch_response(
    response: Mapping[str, Any],
) -> tuple[list[IngestedSample], int]:
    """Turn a fetch response into samples.

    All samples share the response's single timestamp. Malformed instances
    are logged and skipped without affecting the rest of the batch.

    Args:
        response: Fetch response from the remote metrics API.

    Returns:
        Tuple of (parsed samples, number of skipped instances).

    Raises:
        MalformedSample: If the response has no usable timestamp.
    """
    timestamp_ms = timestamp_to_ms(response.get("timestamp"))
    samples: list[IngestedSample] = []
    skipped = 0

    values = response.get("values") or []
    if not isinstance(values, list):
        logger.warning("Skipping fetch response with invalid values: %r", values)
        return samples, 1

    for metric in values:
        name = metric.get("name") if isinstance(metric, Mapping) else None
        if not name:
            logger.warning("Skipping fetched metric without a name: %r", metric)
            skipped += 1
            continue
        instances = metric.get("instances") or []
        if not isinstance(instances, list):
            logger.warning(
                "Skipping metric '%s' with invalid instances: %r", name, instances
            )
            skipped += 1
            continue
        for instance in instances:
            try:
                if not isinstance(instance, Mapping):
                    raise MalformedSample(
                        f"Invalid instance {instance!r} for metric '{name}'",
                        metric=name,
                    )
                value = parse_value(name, instance.get("value"))
            except MalformedSample as e:
                logger.warning("Skipping malformed sample: %s", e)
                skipped += 1
                continue
            samples.append(
                IngestedSample(
                    metric=name,
                    instance_key=instance_key(instance),
                    sample=Sample(value=value, timestamp_ms=timestamp_ms),
                )
            )

    return samples, skipped

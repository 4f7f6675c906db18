"""Post-processing of queried time series into presentation shapes."""

import math
import re

from pmpoller.core.exceptions import InvalidFormat
from pmpoller.core.models import (
    TableColumn,
    TableResult,
    Target,
    TargetFormat,
    TimeSeriesResult,
)
from pmpoller.core.ports import TemplateRendererPort

# Bucket targets end in "<lower>-<upper>", e.g. "10-20" or "metric-10-20"
_HEATMAP_BUCKET_RE = re.compile(r"^(?:.+-)?([^-]+)-([^-]+)$")
_COLUMN_SEPARATOR_RE = re.compile(r"\s\s+")
_INTERRUPT_MARKER = "Ctrl-C"


class Transformations:
    """Reshapes queried time series according to a target's format.

    Args:
        template_renderer: Renderer used to expand legend templates.
    """

    def __init__(self, template_renderer: TemplateRendererPort) -> None:
        self._template_renderer = template_renderer

    def get_label(self, target: str, legend_format: str) -> str:
        """Render the legend template for a single series.

        Available variables are ``instance`` (the original target) and
        ``metric0`` (the last dot-separated component of the target).
        """
        if not legend_format:
            return target
        scoped_vars = {
            "instance": {"value": target},
            "metric0": {"value": target.split(".")[-1]},
        }
        return self._template_renderer.replace(legend_format, scoped_vars)

    def update_labels(
        self, target_results: list[TimeSeriesResult], legend_format: str
    ) -> list[TimeSeriesResult]:
        return [
            {
                "target": self.get_label(result["target"], legend_format),
                "datapoints": result["datapoints"],
            }
            for result in target_results
        ]

    def transform_to_heatmap(
        self, target_results: list[TimeSeriesResult]
    ) -> list[TimeSeriesResult]:
        """Label each bucket series by its upper bound.

        Timestamps are rounded down to whole seconds, the resolution the
        heatmap panel uses for its x-axis buckets.
        """
        heatmap: list[TimeSeriesResult] = []
        for result in target_results:
            label = result["target"]
            match = _HEATMAP_BUCKET_RE.match(label)
            if match:
                label = match.group(2)
            heatmap.append(
                {
                    "target": label,
                    "datapoints": [
                        [point[0], math.floor(point[1] / 1000) * 1000]
                        for point in result["datapoints"]
                    ],
                }
            )
        return heatmap

    def transform_to_table(
        self, target_results: list[TimeSeriesResult]
    ) -> list[TableResult]:
        """Parse the first value of the first series as fixed-width text.

        The first usable line holds the column headers, separated by two or
        more whitespace characters. Each header's position in that line
        fixes the character range of its column; the last column extends to
        the end of the line.

        A row that splits on the same separator into exactly one cell per
        header uses those cells. Any other row is sliced by the column
        ranges; rows shorter than a range produce empty cells, so every row
        has one cell per header.
        """
        table_text = ""
        if target_results and target_results[0]["datapoints"]:
            table_text = str(target_results[0]["datapoints"][0][0])

        columns: list[TableColumn] = []
        rows: list[list[str]] = []
        column_ranges: list[tuple[int, int | None]] = []

        for raw_line in table_text.split("\n"):
            line = raw_line.strip()
            if not line or _INTERRUPT_MARKER in line:
                continue

            if not columns:
                headers = _COLUMN_SEPARATOR_RE.split(line)
                for i, header in enumerate(headers):
                    start = line.find(header)
                    end = line.find(headers[i + 1]) - 1 if i + 1 < len(headers) else None
                    columns.append({"text": header})
                    column_ranges.append((start, end))
            else:
                cells = _COLUMN_SEPARATOR_RE.split(line)
                if len(cells) != len(column_ranges):
                    cells = [line[start:end].strip() for start, end in column_ranges]
                rows.append(cells)

        return [{"columns": columns, "rows": rows, "type": "table"}]

    def transform(
        self, target_results: list[TimeSeriesResult], target: Target
    ) -> list[TimeSeriesResult] | list[TableResult]:
        """Reshape results according to ``target.format``.

        Raises:
            InvalidFormat: If the format is not one of the known formats.
        """
        try:
            target_format = TargetFormat(target.format)
        except ValueError:
            raise InvalidFormat(
                target.format, [option.value for option in TargetFormat]
            ) from None

        if target_format is TargetFormat.TIME_SERIES:
            return self.update_labels(target_results, target.legend_format)
        if target_format is TargetFormat.HEATMAP:
            return self.transform_to_heatmap(target_results)
        return self.transform_to_table(target_results)

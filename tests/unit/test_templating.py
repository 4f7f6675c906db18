"""Tests for the default template renderer and port conformance."""

from unittest.mock import AsyncMock

import pytest

from pmpoller.adapters.pmapi import PmApiClient
from pmpoller.adapters.templating import GrafanaTemplateRenderer
from pmpoller.core.ports import MetricsContextPort, TemplateRendererPort

pytestmark = [pytest.mark.core, pytest.mark.tier(1)]

SCOPED_VARS = {"instance": {"value": "kernel.all.load"}, "metric0": {"value": "load"}}


class TestGrafanaTemplateRenderer:
    """Tests for GrafanaTemplateRenderer."""

    def test_implements_template_renderer_port(self) -> None:
        assert isinstance(GrafanaTemplateRenderer(), TemplateRendererPort)

    @pytest.mark.parametrize(
        ("template", "expected"),
        [
            ("$metric0", "load"),
            ("${metric0}_avg", "load_avg"),
            ("[[instance]]", "kernel.all.load"),
            ("cpu $instance", "cpu kernel.all.load"),
            ("no variables", "no variables"),
        ],
    )
    def test_replaces_variables(self, template: str, expected: str) -> None:
        assert GrafanaTemplateRenderer().replace(template, SCOPED_VARS) == expected

    def test_unknown_variables_are_kept(self) -> None:
        assert GrafanaTemplateRenderer().replace("$host", SCOPED_VARS) == "$host"


class TestMetricsContextPort:
    """Port conformance of the shipped client."""

    def test_pmapi_client_implements_port(self) -> None:
        client = PmApiClient("http://localhost:44322", client=AsyncMock())
        assert isinstance(client, MetricsContextPort)

"""Default label template renderer.

Supports the Grafana variable syntaxes ``$name``, ``${name}`` and
``[[name]]``. Unknown variables are left untouched.
"""

import re
from collections.abc import Mapping
from typing import Any

_VARIABLE_RE = re.compile(r"\$(\w+)|\$\{(\w+)\}|\[\[(\w+)\]\]")


class GrafanaTemplateRenderer:
    """Implementation of TemplateRendererPort."""

    def replace(self, text: str, scoped_vars: Mapping[str, Mapping[str, Any]]) -> str:
        def substitute(match: re.Match[str]) -> str:
            name = next(group for group in match.groups() if group is not None)
            variable = scoped_vars.get(name)
            if variable is None or "value" not in variable:
                return match.group(0)
            return str(variable["value"])

        return _VARIABLE_RE.sub(substitute, text)

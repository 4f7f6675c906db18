"""Example FastAPI application serving polled PCP metrics.

Run with:
    PMPROXY_URL=http://localhost:44322 uvicorn examples.fastapi_example:app

Endpoints:
    POST /query     - {"targets": [{"expr": "kernel.all.load"}], "from": 0, "to": 0}
                      returns time series, heatmap or table results per target
    GET  /search    - ?query=<metric> lists instance values for template variables
    GET  /health    - checks that pmproxy answers and reports the PCP version
"""

import math
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException

from pmpoller import (
    FetchError,
    InvalidFormat,
    PmApiClient,
    PmapiDataSource,
    PollerConfig,
    PollerError,
    Target,
    get_logger,
)

logger = get_logger(__name__)

client = PmApiClient(
    os.environ.get("PMPROXY_URL", "http://localhost:44322"),
    hostspec=os.environ.get("PMPROXY_HOSTSPEC", "pcp://127.0.0.1"),
)
datasource = PmapiDataSource(
    client, PollerConfig.from_json_data({"retentionTime": "30m", "refreshInterval": "1s"})
)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    """Run the poller for the lifetime of the app."""
    async with datasource:
        yield


app = FastAPI(title="PCP Poller Example", lifespan=lifespan)


@app.post("/query")
async def query(request: dict[str, Any]) -> list[dict[str, Any]]:
    """Answer a dashboard query from the local data store."""
    targets = [
        Target(
            expr=t.get("expr", ""),
            ref_id=t.get("refId", "A"),
            format=t.get("format", "time_series"),
            legend_format=t.get("legendFormat", ""),
            hide=bool(t.get("hide", False)),
            hostspec=t.get("hostspec", ""),
        )
        for t in request.get("targets", [])
    ]
    try:
        return await datasource.query(
            targets,
            request.get("from") or -math.inf,
            request.get("to") or math.inf,
            dashboard_refresh=request.get("refresh"),
        )
    except InvalidFormat as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except FetchError as e:
        logger.warning("Query failed: %s", e)
        raise HTTPException(status_code=502, detail=e.message) from e


@app.get("/search")
async def search(query: str) -> list[dict[str, str]]:
    """List instance values of a metric for a dashboard variable."""
    try:
        return await datasource.metric_find_query(query)
    except PollerError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e


@app.get("/health")
async def health() -> dict[str, str]:
    """Report whether pmproxy is reachable."""
    return await datasource.test_datasource()

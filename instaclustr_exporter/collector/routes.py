#  -----------------------------------------------------------------------------
#  Copyright (c) 2024 Bud Ecosystem Inc.
#  #
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#  #
#      http://www.apache.org/licenses/LICENSE-2.0
#  #
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.
#  -----------------------------------------------------------------------------

"""Routes of the exporter: landing page, liveness probe, shutdown and telemetry."""

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST

from ..commons import logging
from ..commons.exceptions import ScrapeError
from .pipeline import CollectionPipeline
from .sink import ObservationSink, render_exposition


logger = logging.get_logger(__name__)

exporter_router = APIRouter(tags=["Exporter"])

HOME_PAGE = """<html>
<head><title>Instaclustr Exporter</title></head>
<body>
<h1>Instaclustr Exporter</h1>
<p><a href="{telemetry_path}">Metrics</a></p>
</body>
</html>"""


@exporter_router.get("/", response_class=HTMLResponse, include_in_schema=False)
async def home(request: Request) -> HTMLResponse:
    """Landing page linking to the telemetry path."""
    return HTMLResponse(HOME_PAGE.format(telemetry_path=request.app.state.telemetry_path))


@exporter_router.get("/health", response_class=PlainTextResponse)
async def health() -> PlainTextResponse:
    """Liveness probe."""
    return PlainTextResponse("OK")


@exporter_router.get("/shutdown", response_class=PlainTextResponse)
async def shutdown(request: Request) -> PlainTextResponse:
    """Request a graceful shutdown of the server.

    Only the first call starts the shutdown, later calls are acknowledged and ignored.
    """
    state = request.app.state
    if state.shutdown_requested:
        logger.info("Shutdown through API call in progress...")
        return PlainTextResponse("Shutting down server")

    state.shutdown_requested = True
    logger.info("Shutdown request (/shutdown)")
    server = getattr(state, "server", None)
    if server is not None:
        server.should_exit = True
    else:
        logger.warning("No server attached to the application, ignoring shutdown request")
    return PlainTextResponse("Shutting down server")


async def metrics(request: Request) -> Response:
    """Run one scrape of the Instaclustr APIs and return it in the Prometheus text format.

    A scrape that cannot list the clusters returns an empty exposition; the error is logged.
    """
    pipeline: CollectionPipeline = request.app.state.pipeline
    sink = ObservationSink()
    try:
        await pipeline.collect(sink)
    except ScrapeError as e:
        logger.error(f"Scrape failed: {e}")

    return Response(content=render_exposition(sink), media_type=CONTENT_TYPE_LATEST)

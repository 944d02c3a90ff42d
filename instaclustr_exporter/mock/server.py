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

"""FastAPI app mimicking the Instaclustr API from a directory of JSON files.

The data directory holds `listAllClusters.json`, `<clusterId>/getClusterStatus.json` and
`<nodeId>/getAllNodeMetrics.json`.
"""

import argparse
import json
from pathlib import Path
from typing import Any, List, Optional, Union

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse

from ..commons import logging


logger = logging.get_logger(__name__)

DEFAULT_DATA_DIR = Path(__file__).parent / "data"
DEFAULT_LISTEN_ADDRESS = "127.0.0.1:8082"

ERROR_LINK = "https://www.w3.org/Protocols/rfc2616/rfc2616-sec10.html"
NOT_FOUND_RESPONSE = {"status": 404, "message": "HTTP 404 Not Found", "link": ERROR_LINK}
INTERNAL_SERVER_ERROR_RESPONSE = {
    "status": 500,
    "message": "HTTP Internal Server Error 500 Server",
    "link": ERROR_LINK,
}


def _serve_file(data_dir: Path, *parts: str) -> JSONResponse:
    # Resource ids are single path components.
    if any(part in ("", ".", "..") or Path(part).name != part for part in parts):
        return JSONResponse(NOT_FOUND_RESPONSE, status_code=status.HTTP_404_NOT_FOUND)

    path = data_dir.joinpath(*parts)
    try:
        content: Union[List[Any], dict] = json.loads(path.read_text())
    except FileNotFoundError:
        logger.warning(f"No mock data at {path}")
        return JSONResponse(NOT_FOUND_RESPONSE, status_code=status.HTTP_404_NOT_FOUND)
    except (OSError, ValueError) as e:
        logger.error(f"Error reading file {path}: {e}")
        return JSONResponse(INTERNAL_SERVER_ERROR_RESPONSE, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return JSONResponse(content)


def create_mock_app(data_dir: Optional[Path] = None) -> FastAPI:
    """Create the mock Instaclustr API serving files from `data_dir`."""
    data_dir = Path(data_dir or DEFAULT_DATA_DIR)
    app = FastAPI(title="Instaclustr API mock", docs_url=None, redoc_url=None)
    app.state.data_dir = data_dir
    app.state.shutdown_requested = False
    app.state.server = None

    @app.get("/provisioning/v1")
    async def list_clusters() -> JSONResponse:
        return _serve_file(data_dir, "listAllClusters.json")

    @app.get("/provisioning/v1/{cluster_id}")
    async def get_cluster_status(cluster_id: str) -> JSONResponse:
        return _serve_file(data_dir, cluster_id, "getClusterStatus.json")

    @app.get("/monitoring/v1/nodes/{node_id}")
    async def get_node_metrics(node_id: str, metrics: str = "") -> JSONResponse:
        logger.debug(f"Node metrics requested for {node_id}: {metrics}")
        return _serve_file(data_dir, node_id, "getAllNodeMetrics.json")

    @app.get("/health", response_class=PlainTextResponse)
    async def health() -> PlainTextResponse:
        return PlainTextResponse("OK")

    @app.get("/shutdown", response_class=PlainTextResponse)
    async def shutdown(request: Request) -> PlainTextResponse:
        state = request.app.state
        if not state.shutdown_requested:
            state.shutdown_requested = True
            logger.info("Shutdown request (/shutdown)")
            if state.server is not None:
                state.server.should_exit = True
        else:
            logger.info("Shutdown through API call in progress...")
        return PlainTextResponse("Shutting down server")

    return app


def main(argv: Optional[List[str]] = None) -> None:
    """Run the mock Instaclustr API."""
    parser = argparse.ArgumentParser(prog="instaclustr-mock", description="Mock of the Instaclustr API")
    parser.add_argument("--listen-address", default=DEFAULT_LISTEN_ADDRESS, help="host:port to listen on.")
    parser.add_argument("--data-dir", type=Path, default=DEFAULT_DATA_DIR, help="Directory with the JSON data.")
    parser.add_argument("--log-level", default="INFO", help="Minimum log level.")
    args = parser.parse_args(argv)

    logging.configure_logging(args.log_level)
    host, _, port = args.listen_address.rpartition(":")
    if not port.isdigit():
        parser.error(f"invalid listen address {args.listen_address!r}, expected host:port")

    app = create_mock_app(args.data_dir)
    server = uvicorn.Server(uvicorn.Config(app, host=host or "127.0.0.1", port=int(port), log_config=None))
    app.state.server = server
    logger.info(f"Mock Instaclustr API listening on {args.listen_address}, serving {args.data_dir}")
    server.run()


if __name__ == "__main__":
    main()

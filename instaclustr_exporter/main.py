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

"""The main entry point for the exporter, building the FastAPI app and running it with uvicorn."""

import argparse
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import aiohttp
import uvicorn
from fastapi import FastAPI

from .__about__ import __version__
from .collector.pipeline import CollectionPipeline
from .collector.routes import exporter_router, metrics
from .commons import logging
from .commons.config import AppConfig, SecretsConfig, app_settings, secrets_settings
from .upstream.client import MonitoringAPI, ProvisioningAPI, build_clients


logger = logging.get_logger(__name__)


def _build_pipeline(config: AppConfig, provisioning: ProvisioningAPI, monitoring: MonitoringAPI) -> CollectionPipeline:
    return CollectionPipeline(
        provisioning,
        monitoring,
        scrape_timeout=config.scrape_timeout,
        max_concurrent_requests=config.max_concurrent_requests,
    )


def create_app(
    config: Optional[AppConfig] = None,
    secrets: Optional[SecretsConfig] = None,
    provisioning: Optional[ProvisioningAPI] = None,
    monitoring: Optional[MonitoringAPI] = None,
) -> FastAPI:
    """Create the exporter application.

    Args:
        config: Application settings, defaults to the environment based `app_settings`.
        secrets: API keys, defaults to `secrets_settings`.
        provisioning: Provisioning API to use instead of the HTTP client built from the settings.
        monitoring: Monitoring API to use instead of the HTTP client built from the settings.
            Both `provisioning` and `monitoring` must be given to replace the HTTP clients.

    Returns:
        The FastAPI application. The HTTP clients, when used, share one aiohttp session that
        lives as long as the application.
    """
    config = config or app_settings
    secrets = secrets or secrets_settings
    injected = provisioning is not None and monitoring is not None

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(f"Starting {config.name} v{config.version} on {config.listen_address}")
        logger.info(f"Instaclustr API: {config.instaclustr_url}, telemetry path: {config.telemetry_path}")

        session = None
        if not injected:
            session = aiohttp.ClientSession()
            app.state.pipeline = _build_pipeline(config, *build_clients(config, secrets, session))
        try:
            yield
        finally:
            if session is not None:
                await session.close()
            logger.info(f"Stopped {config.name}")

    app = FastAPI(
        title="Instaclustr Exporter",
        description=config.description,
        version=config.version,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
    )
    app.state.telemetry_path = config.telemetry_path
    app.state.shutdown_requested = False
    app.state.server = None
    app.state.pipeline = _build_pipeline(config, provisioning, monitoring) if injected else None

    app.include_router(exporter_router)
    app.add_api_route(config.telemetry_path, metrics, methods=["GET"], include_in_schema=False)
    return app


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse the command line flags of the exporter."""
    parser = argparse.ArgumentParser(
        prog="instaclustr-exporter", description="Prometheus exporter for Instaclustr managed Cassandra clusters"
    )
    parser.add_argument("--version", action="store_true", help="Print version information.")
    parser.add_argument(
        "--web.listen-address", dest="listen_address", help="Address to listen on for web interface and telemetry."
    )
    parser.add_argument("--web.telemetry-path", dest="telemetry_path", help="Path under which to expose metrics.")
    parser.add_argument("--instaclustr.url", dest="instaclustr_url", help="Base URL of the Instaclustr API.")
    parser.add_argument("--instaclustr.user", dest="instaclustr_user", help="User for the Instaclustr API.")
    parser.add_argument("--log-level", dest="log_level", help="Minimum log level, e.g. INFO.")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    """Run the exporter until a signal or a /shutdown request stops it."""
    args = parse_args(argv)
    if args.version:
        print(__version__.replace("@", " version "))
        return

    overrides: Dict[str, Any] = {
        key: value
        for key, value in vars(args).items()
        if key in AppConfig.model_fields and value is not None
    }
    config = AppConfig(**overrides) if overrides else app_settings
    logging.configure_logging(config.log_level, config.debug)

    app = create_app(config, secrets_settings)
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=config.listen_host,
            port=config.listen_port,
            log_config=None,
            timeout_graceful_shutdown=config.shutdown_timeout,
        )
    )
    app.state.server = server
    server.run()


if __name__ == "__main__":
    main()

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

"""Clients for the Instaclustr provisioning and monitoring APIs."""

import asyncio
import json
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Optional, Protocol, Tuple

import aiohttp

from ..commons import logging
from ..commons.config import AppConfig, SecretsConfig, resolve_instaclustr_url
from ..commons.constants import (
    MONITORING_API_ENDPOINT,
    MONITORING_API_VERSION,
    PROVISIONING_API_ENDPOINT,
    PROVISIONING_API_VERSION,
)
from ..commons.exceptions import UpstreamRequestError


logger = logging.get_logger(__name__)


class ProvisioningAPI(Protocol):
    """Capability interface for the provisioning API."""

    async def list_clusters(self) -> bytes: ...

    async def get_cluster_status(self, cluster_id: str) -> bytes: ...


class MonitoringAPI(Protocol):
    """Capability interface for the monitoring API."""

    async def get_node_metrics(self, node_id: str, metric_query: str) -> bytes: ...


def _upstream_error_message(body: bytes) -> Optional[str]:
    """Extract `message` from an upstream JSON error body (`{status, message, link}`)."""
    try:
        data = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return None
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"]
    return None


class InstaclustrClient:
    """Authenticated HTTP client for one Instaclustr API.

    Every request carries HTTP Basic credentials made of the configured user and the API
    key of this endpoint. Requests are never retried or cached; failures are raised as
    `UpstreamRequestError` and the caller decides what to do with them.
    """

    def __init__(
        self,
        url: str,
        user: str,
        api_key: str,
        api_endpoint: str,
        api_version: str,
        timeout: int = 30,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize the client.

        Args:
            url: Base URL of the Instaclustr API. Empty or invalid values fall back to the public API.
            user: API user.
            api_key: API key for this endpoint.
            api_endpoint: API name, e.g. `provisioning`.
            api_version: API version, e.g. `v1`.
            timeout: Total timeout of a single request in seconds.
            session: Optional shared session. When omitted a session is opened per request.
        """
        self.url = resolve_instaclustr_url(url)
        self.user = user
        self.api_key = api_key
        self.api_endpoint = api_endpoint
        self.api_version = api_version
        self.timeout = timeout
        self._session = session

        if not user or not api_key:
            logger.warning(f"No credentials configured for the Instaclustr {api_endpoint} API")

    @property
    def base_url(self) -> str:
        """Root URL of this API, e.g. `https://api.instaclustr.com/provisioning/v1`."""
        return f"{self.url}/{self.api_endpoint}/{self.api_version}"

    @asynccontextmanager
    async def _session_scope(self) -> AsyncGenerator[aiohttp.ClientSession, None]:
        if self._session is not None:
            yield self._session
        else:
            async with aiohttp.ClientSession() as session:
                yield session

    async def _get(self, url: str, params: Optional[Dict[str, str]] = None) -> bytes:
        """Send an authenticated GET request and return the raw response body.

        Raises:
            UpstreamRequestError: On transport failures, timeouts, non-2xx responses or body read errors.
        """
        auth = aiohttp.BasicAuth(self.user, self.api_key)
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        try:
            async with self._session_scope() as session:
                async with session.get(url, params=params, auth=auth, timeout=timeout) as response:
                    body = await response.read()
                    if not 200 <= response.status < 300:
                        message = _upstream_error_message(body) or f"Unexpected response status {response.status}"
                        raise UpstreamRequestError(message, url=url, status_code=response.status)
                    return body
        except aiohttp.ClientError as e:
            raise UpstreamRequestError(f"Error sending request: {e}", url=url) from e
        except asyncio.TimeoutError as e:
            raise UpstreamRequestError(f"Request timed out after {self.timeout}s", url=url) from e


class ProvisioningClient(InstaclustrClient):
    """Client for the Instaclustr provisioning API."""

    def __init__(
        self, url: str, user: str, api_key: str, timeout: int = 30, session: Optional[aiohttp.ClientSession] = None
    ):
        super().__init__(url, user, api_key, PROVISIONING_API_ENDPOINT, PROVISIONING_API_VERSION, timeout, session)

    async def list_clusters(self) -> bytes:
        """Return the raw list of clusters of the account."""
        return await self._get(self.base_url)

    async def get_cluster_status(self, cluster_id: str) -> bytes:
        """Return the raw status of a cluster, including its data centres and nodes."""
        return await self._get(f"{self.base_url}/{cluster_id}")


class MonitoringClient(InstaclustrClient):
    """Client for the Instaclustr monitoring API."""

    def __init__(
        self, url: str, user: str, api_key: str, timeout: int = 30, session: Optional[aiohttp.ClientSession] = None
    ):
        super().__init__(url, user, api_key, MONITORING_API_ENDPOINT, MONITORING_API_VERSION, timeout, session)

    async def get_node_metrics(self, node_id: str, metric_query: str) -> bytes:
        """Return the raw metrics of a node.

        Args:
            node_id: Node to query.
            metric_query: Comma separated metric query tokens, e.g. `n::cpuUtilization,n::repairs`.
        """
        return await self._get(f"{self.base_url}/nodes/{node_id}", params={"metrics": metric_query})


def build_clients(
    config: AppConfig, secrets: SecretsConfig, session: Optional[aiohttp.ClientSession] = None
) -> Tuple[ProvisioningClient, MonitoringClient]:
    """Create the provisioning and monitoring clients from the application settings."""
    provisioning = ProvisioningClient(
        config.instaclustr_url, config.instaclustr_user, secrets.provisioning_api_key, config.request_timeout, session
    )
    monitoring = MonitoringClient(
        config.instaclustr_url, config.instaclustr_user, secrets.monitoring_api_key, config.request_timeout, session
    )
    return provisioning, monitoring

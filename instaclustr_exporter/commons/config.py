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

"""Manages application and secret configurations, loaded from environment variables and an optional `.env` file."""

from typing import Any, Dict, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from instaclustr_exporter.__about__ import __version__

from . import logging
from .constants import DEFAULT_INSTACLUSTR_URL, Environment, LogLevel


load_dotenv()

logger = logging.get_logger(__name__)


def resolve_instaclustr_url(url: Optional[str]) -> str:
    """Return a usable Instaclustr base URL, falling back to the public API.

    Empty values and values without a scheme or host are replaced with
    `DEFAULT_INSTACLUSTR_URL`. Trailing slashes are removed.
    """
    if not url or not url.strip():
        return DEFAULT_INSTACLUSTR_URL

    try:
        parsed = urlparse(url.strip())
    except ValueError as e:
        logger.warning(f"Invalid Instaclustr URL {url!r}, using {DEFAULT_INSTACLUSTR_URL}: {e}")
        return DEFAULT_INSTACLUSTR_URL

    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        logger.warning(f"Invalid Instaclustr URL {url!r}, using {DEFAULT_INSTACLUSTR_URL}")
        return DEFAULT_INSTACLUSTR_URL

    return url.strip().rstrip("/")


class BaseConfig(BaseSettings):
    """Base Config to be used as a parent class for other Config classes."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)


class AppConfig(BaseConfig):
    """Manages configuration settings for the exporter.

    Attributes:
        env (Environment): The environment in which the exporter is running.
        debug (Optional[bool]): Enable or disable debug output, derived from `env` when unset.
        log_level (Optional[LogLevel]): Minimum log level, derived from `env` when unset.
        listen_address (str): `host:port` the HTTP server binds to. An empty host binds all interfaces.
        telemetry_path (str): Path under which metrics are exposed.
        instaclustr_url (str): Base URL of the Instaclustr API.
        instaclustr_user (str): User for the Instaclustr API.
        request_timeout (int): Timeout in seconds for a single upstream request.
        scrape_timeout (Optional[float]): Upper bound in seconds for the fan-out of one scrape.
        max_concurrent_requests (Optional[int]): Upper bound on in-flight node metrics requests.

    Example:
        ```python
        from instaclustr_exporter.commons.config import app_settings

        if app_settings.env == Environment.DEVELOPMENT:
            ...
        ```
    """

    # App Info
    name: str = __version__.split("@")[0]
    version: str = __version__.split("@")[-1]
    description: str = "Prometheus exporter for Instaclustr managed Cassandra clusters"

    # Deployment configs
    env: Environment = Field(Environment.PRODUCTION, alias="ENV")
    debug: Optional[bool] = Field(None, alias="DEBUG")
    log_level: Optional[LogLevel] = Field(None, alias="LOG_LEVEL")

    # Web server
    listen_address: str = Field(":9999", alias="LISTEN_ADDRESS")
    telemetry_path: str = Field("/metrics", alias="TELEMETRY_PATH")
    shutdown_timeout: int = Field(10, alias="SHUTDOWN_TIMEOUT", ge=0)

    # Instaclustr API
    instaclustr_url: str = Field(DEFAULT_INSTACLUSTR_URL, alias="INSTACLUSTR_URL")
    instaclustr_user: str = Field("", alias="INSTACLUSTR_USER")
    request_timeout: int = Field(30, alias="INSTACLUSTR_REQUEST_TIMEOUT", gt=0)

    # Collection
    scrape_timeout: Optional[float] = Field(None, alias="SCRAPE_TIMEOUT", gt=0)
    max_concurrent_requests: Optional[int] = Field(None, alias="MAX_CONCURRENT_REQUESTS", ge=1)

    @model_validator(mode="before")
    @classmethod
    def resolve_env(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Convert free-form environment names such as `prod` or `development` to `Environment` values."""
        if not isinstance(data, dict):
            return data
        for key in ("env", "ENV"):
            if isinstance(data.get(key), str):
                data[key] = Environment.from_string(data[key])
        return data

    @model_validator(mode="after")
    def set_env_details(self) -> "AppConfig":
        """Fill `log_level` and `debug` from the environment defaults when they are not set explicitly."""
        if self.log_level is None:
            self.log_level = self.env.log_level
        if self.debug is None:
            self.debug = self.env.debug
        return self

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: Any) -> Any:
        """Accept log levels in any case."""
        if isinstance(value, str):
            return value.upper()
        return value

    @field_validator("instaclustr_url", mode="before")
    @classmethod
    def validate_instaclustr_url(cls, value: Any) -> str:
        """Fall back to the public API URL for empty or invalid values."""
        return resolve_instaclustr_url(value)

    @field_validator("listen_address")
    @classmethod
    def validate_listen_address(cls, value: str) -> str:
        """Require a `host:port` or `:port` address."""
        _, sep, port = value.rpartition(":")
        if not sep or not port.isdigit():
            raise ValueError(f"Listen address must be of the form host:port, got {value!r}")
        return value

    @field_validator("telemetry_path")
    @classmethod
    def validate_telemetry_path(cls, value: str) -> str:
        """Make sure the telemetry path is absolute."""
        value = value.strip() or "/metrics"
        return value if value.startswith("/") else f"/{value}"

    @property
    def listen_host(self) -> str:
        """Host part of `listen_address`, all interfaces when empty."""
        host, _, _ = self.listen_address.rpartition(":")
        return host or "0.0.0.0"

    @property
    def listen_port(self) -> int:
        """Port part of `listen_address`."""
        _, _, port = self.listen_address.rpartition(":")
        return int(port)


class SecretsConfig(BaseConfig):
    """Manages the API keys for the Instaclustr provisioning and monitoring APIs."""

    provisioning_api_key: str = Field("", alias="INSTACLUSTR_PROVISIONING_API_KEY")
    monitoring_api_key: str = Field("", alias="INSTACLUSTR_MONITORING_API_KEY")


app_settings = AppConfig()
secrets_settings = SecretsConfig()

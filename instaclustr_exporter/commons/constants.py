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

"""Defines constant values used throughout the project, including application-specific constants."""

from enum import Enum


class LogLevel(Enum):
    """Define logging levels aligned with Python's built-in `logging` module levels.

    Attributes:
        DEBUG (LogLevel): Debug-level logging.
        INFO (LogLevel): Info-level logging.
        WARNING (LogLevel): Warning-level logging.
        ERROR (LogLevel): Error-level logging.
        CRITICAL (LogLevel): Critical-level logging.
        NOTSET (LogLevel): No logging level.
    """

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"
    NOTSET = "NOTSET"


class Environment(str, Enum):
    """Enumerate application environments and provide environment-specific logging defaults.

    Attributes:
        PRODUCTION (Environment): Represents the production environment.
        DEVELOPMENT (Environment): Represents the development environment.
        TESTING (Environment): Represents the testing environment.
    """

    PRODUCTION = "PRODUCTION"
    DEVELOPMENT = "DEVELOPMENT"
    TESTING = "TESTING"

    @staticmethod
    def from_string(value: str) -> "Environment":
        """Convert a string representation to an `Environment` instance.

        Args:
            value (str): The string representation of the environment, e.g. `prod`, `Development`.

        Returns:
            Environment: The corresponding `Environment` instance.

        Raises:
            ValueError: If the string does not match any valid environment.
        """
        import re

        matches = re.findall(r"(?i)\b(dev|prod|test)(elop|elopment|uction|ing|er)?\b", value)

        env = matches[0][0].lower() if len(matches) else ""
        if env == "dev":
            return Environment.DEVELOPMENT
        elif env == "prod":
            return Environment.PRODUCTION
        elif env == "test":
            return Environment.TESTING
        else:
            raise ValueError(
                f"Invalid environment: {value}. Only the following environments are allowed: "
                f"{', '.join(map(str, Environment.__members__))}"
            )

    @property
    def log_level(self) -> LogLevel:
        """Return the default logging level for the environment."""
        return {"PRODUCTION": LogLevel.INFO}.get(self.value, LogLevel.DEBUG)

    @property
    def debug(self) -> bool:
        """Return whether debugging is enabled by default for the environment."""
        return {"PRODUCTION": False}.get(self.value, True)


# Instaclustr API
DEFAULT_INSTACLUSTR_URL = "https://api.instaclustr.com"
PROVISIONING_API_ENDPOINT = "provisioning"
PROVISIONING_API_VERSION = "v1"
MONITORING_API_ENDPOINT = "monitoring"
MONITORING_API_VERSION = "v1"

# Any other status string, including an empty one, is reported as not running.
RUNNING_STATUS = "RUNNING"

# Exposition
METRIC_NAMESPACE = "cassandra"
US_TO_SECONDS_FACTOR = 1e-06

NODE_METRIC_QUERY_PREFIX = "n::"

# Metrics requested from the monitoring API for every node.
NODE_METRIC_NAMES = (
    "cpuUtilization",  # CPU utilisation as a percentage of total available, capped at 100% regardless of cores.
    "diskUtilization",  # Disk space used by Cassandra as a percentage of total available.
    "cassandraReads",
    "cassandraWrites",
    "compactions",  # Pending compactions.
    "repairs",  # Active and pending repair tasks.
    "clientRequestRead",  # Average latency and 95th percentile per client read request.
    "clientRequestWrite",  # Average latency and 95th percentile per client write request.
)

NODE_METRICS_QUERY = ",".join(f"{NODE_METRIC_QUERY_PREFIX}{name}" for name in NODE_METRIC_NAMES)

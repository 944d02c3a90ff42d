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

"""Decodes raw Instaclustr API responses into typed records."""

import json
from typing import Any, List

from pydantic import TypeAdapter, ValidationError

from ..commons import logging
from ..commons.exceptions import DecodeError
from .schemas import Cluster, ClusterStatus, MetricSample, NodeMetrics


logger = logging.get_logger(__name__)

_CLUSTER_LIST = TypeAdapter(List[Cluster])
_CLUSTER_STATUS = TypeAdapter(ClusterStatus)
_NODE_METRICS_LIST = TypeAdapter(List[NodeMetrics])


def _load_json(raw: bytes, resource: str) -> Any:
    if raw is None or not raw.strip():
        raise DecodeError("Empty response body", resource=resource)
    try:
        return json.loads(raw)
    except (ValueError, UnicodeDecodeError) as e:
        raise DecodeError(f"Malformed JSON: {e}", resource=resource) from e


def _validate(adapter: TypeAdapter, data: Any, resource: str) -> Any:
    try:
        return adapter.validate_python(data)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or "<root>"
        raise DecodeError(
            f"Unexpected response shape ({e.error_count()} error(s)), first at {location}: {first['msg']}",
            resource=resource,
        ) from e


def decode_clusters(raw: bytes) -> List[Cluster]:
    """Decode the provisioning API cluster list.

    Args:
        raw: Response body of `GET /provisioning/v1`.

    Returns:
        The listed clusters.

    Raises:
        DecodeError: If the body is not a JSON array of cluster records.
    """
    return _validate(_CLUSTER_LIST, _load_json(raw, "clusters"), "clusters")


def decode_cluster_status(raw: bytes, cluster_id: str = "") -> ClusterStatus:
    """Decode the provisioning API status of one cluster.

    Args:
        raw: Response body of `GET /provisioning/v1/{clusterId}`.
        cluster_id: Cluster the status belongs to, used in error messages.

    Raises:
        DecodeError: If the body is not a JSON object with a `dataCentres` array. Upstream
            error bodies (`{status, message, link}`) fail here as well.
    """
    resource = f"cluster/{cluster_id}" if cluster_id else "cluster"
    return _validate(_CLUSTER_STATUS, _load_json(raw, resource), resource)


def decode_node_metrics(raw: bytes, node_id: str = "") -> List[NodeMetrics]:
    """Decode the monitoring API response for a node.

    The response holds one element per queried node, normally exactly one.

    Raises:
        DecodeError: If the body is not a JSON array of `{id, payload}` records.
    """
    resource = f"node/{node_id}" if node_id else "node"
    return _validate(_NODE_METRICS_LIST, _load_json(raw, resource), resource)


def sample_value(sample: MetricSample) -> float:
    """Return the first value of a sample as a float.

    Only the first value is used, further values are ignored. A missing or unparsable
    value is reported as `0.0` with a warning instead of failing the node.
    """
    if not sample.values:
        logger.warning(f"Metric {sample.name}/{sample.type} has no values, reporting 0")
        return 0.0

    raw_value = sample.values[0].value
    try:
        value = float(raw_value)
    except (TypeError, ValueError):
        logger.warning(f"Error parsing value of metric {sample.name}/{sample.type}: {raw_value!r}, reporting 0")
        return 0.0

    return value

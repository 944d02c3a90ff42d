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

"""Maps decoded Instaclustr records to the fixed set of exported metrics.

Cluster metrics are labelled with the cluster identity (`clusterId`, `clusterName`). Every
node metric carries the full node identity (`clusterId`, `clusterName`, `nodeId`,
`nodePublicIp`, `nodePrivateIp`, `rack`) so series can be joined without `node_info`.

Client request latencies are reported by the monitoring API in microseconds and exported
in seconds.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from ..commons import logging
from ..commons.constants import METRIC_NAMESPACE, US_TO_SECONDS_FACTOR
from .decoder import sample_value
from .schemas import (
    Cluster,
    ClusterIdentity,
    MetricKind,
    MetricSample,
    Node,
    NodeIdentity,
    NodeMetrics,
    Observation,
)


logger = logging.get_logger(__name__)

CLUSTER_LABELS = ("clusterId", "clusterName")
NODE_LABELS = ("clusterId", "clusterName", "nodeId", "nodePublicIp", "nodePrivateIp", "rack")


def build_fq_name(subsystem: str, name: str) -> str:
    """Join namespace, subsystem and name the way Prometheus client libraries do."""
    return "_".join(part for part in (METRIC_NAMESPACE, subsystem, name) if part)


@dataclass(frozen=True)
class MetricDefinition:
    """Static description of an exported metric."""

    name: str
    documentation: str
    label_names: Tuple[str, ...]
    kind: MetricKind = MetricKind.GAUGE
    factor: float = 1.0

    def observe(self, value: float, labels: Dict[str, str]) -> Observation:
        """Build an observation of this metric, applying the unit conversion factor."""
        return Observation(name=self.name, kind=self.kind, value=value * self.factor, labels=labels)


CLUSTER_INFO = MetricDefinition(
    build_fq_name("cluster", "info"),
    "A mapping between the clusterId and clusterName",
    CLUSTER_LABELS,
)
CLUSTER_RUNNING = MetricDefinition(
    build_fq_name("cluster", "running"),
    "Whether or not the cassandra cluster is running (1 when its status is RUNNING, 0 otherwise)",
    CLUSTER_LABELS,
)
# Not suffixed with _count, which Prometheus reserves for summaries and histograms.
CLUSTER_NODES = MetricDefinition(
    build_fq_name("cluster", "nodes"),
    "Number of nodes the cluster is composed of",
    CLUSTER_LABELS,
)
CLUSTER_NODES_RUNNING = MetricDefinition(
    build_fq_name("cluster", "nodes_running"),
    "Number of nodes running in the cluster",
    CLUSTER_LABELS,
)
NODE_INFO = MetricDefinition(
    build_fq_name("node", "info"),
    "A mapping between nodeId with its IPs, racks and cluster",
    NODE_LABELS,
)
NODE_RUNNING = MetricDefinition(
    build_fq_name("node", "running"),
    "Whether or not a single node is running (1 when its status is RUNNING, 0 otherwise)",
    NODE_LABELS,
)
NODE_CPU_UTILIZATION = MetricDefinition(
    build_fq_name("node", "cpu_utilization_percentage"),
    "Current CPU utilisation as a percentage of total available. Maximum value is 100%, "
    "regardless of the number of cores on the node.",
    NODE_LABELS,
)
NODE_DISK_UTILIZATION = MetricDefinition(
    build_fq_name("node", "disk_utilization_percentage"),
    "Total disk space utilisation, by Cassandra, as a percentage of total available.",
    NODE_LABELS,
)
NODE_READS = MetricDefinition(
    build_fq_name("node", "reads_per_second"),
    "Reads per second by Cassandra.",
    NODE_LABELS,
)
NODE_WRITES = MetricDefinition(
    build_fq_name("node", "writes_per_second"),
    "Writes per second by Cassandra.",
    NODE_LABELS,
)
NODE_COMPACTIONS = MetricDefinition(
    build_fq_name("node", "compactions"),
    "Number of pending compactions.",
    NODE_LABELS,
)
NODE_REPAIRS_PENDING = MetricDefinition(
    build_fq_name("node", "repairs_pending"),
    "Number of pending repair tasks.",
    NODE_LABELS,
)
NODE_REPAIRS_ACTIVE = MetricDefinition(
    build_fq_name("node", "repairs_active"),
    "Number of active repair tasks.",
    NODE_LABELS,
)
NODE_CLIENT_REQUEST_READ_LATENCY = MetricDefinition(
    build_fq_name("node", "client_request_read_latency"),
    "Average latency in seconds per client read request (i.e. the period from when a node receives "
    "a client request, gathers the records and responds to the client).",
    NODE_LABELS,
    factor=US_TO_SECONDS_FACTOR,
)
NODE_CLIENT_REQUEST_READ_PERCENTILE = MetricDefinition(
    build_fq_name("node", "client_request_read_percentile"),
    "95th percentile latency in seconds per client read request (i.e. the period from when a node "
    "receives a client request, gathers the records and responds to the client).",
    NODE_LABELS,
    factor=US_TO_SECONDS_FACTOR,
)
NODE_CLIENT_REQUEST_WRITE_LATENCY = MetricDefinition(
    build_fq_name("node", "client_request_write_latency"),
    "Average latency in seconds per client write request (i.e. the period from when a node receives "
    "a client request, gathers the records and responds to the client).",
    NODE_LABELS,
    factor=US_TO_SECONDS_FACTOR,
)
NODE_CLIENT_REQUEST_WRITE_PERCENTILE = MetricDefinition(
    build_fq_name("node", "client_request_write_percentile"),
    "95th percentile latency in seconds per client write request (i.e. the period from when a node "
    "receives a client request, gathers the records and responds to the client).",
    NODE_LABELS,
    factor=US_TO_SECONDS_FACTOR,
)

# (metric, type) -> definition. A type of None matches any type of that metric.
SAMPLE_MAPPINGS: Dict[Tuple[str, Optional[str]], MetricDefinition] = {
    ("cpuUtilization", None): NODE_CPU_UTILIZATION,
    ("diskUtilization", None): NODE_DISK_UTILIZATION,
    ("cassandraReads", None): NODE_READS,
    ("cassandraWrites", None): NODE_WRITES,
    ("compactions", None): NODE_COMPACTIONS,
    ("repairs", "pendingtasks"): NODE_REPAIRS_PENDING,
    ("repairs", "activetasks"): NODE_REPAIRS_ACTIVE,
    ("clientRequestRead", "latency_per_operation"): NODE_CLIENT_REQUEST_READ_LATENCY,
    ("clientRequestRead", "95thPercentile"): NODE_CLIENT_REQUEST_READ_PERCENTILE,
    ("clientRequestWrite", "latency_per_operation"): NODE_CLIENT_REQUEST_WRITE_LATENCY,
    ("clientRequestWrite", "95thPercentile"): NODE_CLIENT_REQUEST_WRITE_PERCENTILE,
}

METRIC_DEFINITIONS: Dict[str, MetricDefinition] = {
    definition.name: definition
    for definition in (
        CLUSTER_INFO,
        CLUSTER_RUNNING,
        CLUSTER_NODES,
        CLUSTER_NODES_RUNNING,
        NODE_INFO,
        NODE_RUNNING,
        *SAMPLE_MAPPINGS.values(),
    )
}


def _running_value(is_running: bool) -> float:
    return 1.0 if is_running else 0.0


def map_cluster(cluster: Cluster) -> List[Observation]:
    """Map a listed cluster to its info, health and node count observations."""
    labels = ClusterIdentity.from_cluster(cluster).labels
    return [
        CLUSTER_INFO.observe(1, labels),
        CLUSTER_RUNNING.observe(_running_value(cluster.is_running), labels),
        CLUSTER_NODES.observe(float(cluster.node_count), labels),
        CLUSTER_NODES_RUNNING.observe(float(cluster.running_node_count), labels),
    ]


def map_node(identity: NodeIdentity, node: Node) -> List[Observation]:
    """Map a node record to its info and health observations."""
    labels = identity.labels
    return [
        NODE_INFO.observe(1, labels),
        NODE_RUNNING.observe(_running_value(node.is_running), labels),
    ]


def lookup_definition(name: str, type_: str) -> Optional[MetricDefinition]:
    """Find the exported metric for an upstream metric name and type."""
    return SAMPLE_MAPPINGS.get((name, type_)) or SAMPLE_MAPPINGS.get((name, None))


def map_sample(identity: NodeIdentity, sample: MetricSample) -> Optional[Observation]:
    """Map one monitoring API sample to an observation.

    Returns:
        The observation, or None when the (metric, type) pair is not exported.
    """
    definition = lookup_definition(sample.name, sample.type)
    if definition is None:
        logger.warning(f"Unknown n::{sample.name} metric type {sample.type!r} for node {identity.node_id}, skipping")
        return None
    return definition.observe(sample_value(sample), identity.labels)


def map_node_metrics(identity: NodeIdentity, responses: Iterable[NodeMetrics]) -> List[Observation]:
    """Map every sample of a monitoring API response to observations, skipping unknown ones."""
    observations = []
    for response in responses:
        for sample in response.payload:
            observation = map_sample(identity, sample)
            if observation is not None:
                observations.append(observation)
    return observations

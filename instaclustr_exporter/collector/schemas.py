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

"""Schemas for the Instaclustr API responses and the normalized metric observations."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..commons.constants import RUNNING_STATUS


class UpstreamModel(BaseModel):
    """Base for records decoded from the Instaclustr API.

    Fields are declared with the API's camelCase names as aliases; unknown fields are ignored.
    JSON nulls are treated as absent fields, so optional fields fall back to their defaults
    while required ones still fail validation.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def drop_null_fields(cls, data: Any) -> Any:
        """Remove null valued keys before validation."""
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class Cluster(UpstreamModel):
    """A cluster as listed by the provisioning API."""

    id: str = Field(..., description="Cluster ID")
    name: str = Field("", description="Cluster name")
    node_count: int = Field(0, alias="nodeCount", ge=0, description="Number of nodes in the cluster")
    running_node_count: int = Field(0, alias="runningNodeCount", ge=0, description="Number of running nodes")
    derived_status: str = Field("", alias="derivedStatus", description="Cluster status, e.g. RUNNING")

    @property
    def is_running(self) -> bool:
        """Whether the cluster reports the RUNNING status."""
        return self.derived_status == RUNNING_STATUS


class Node(UpstreamModel):
    """A node of a data centre as returned by the cluster status call."""

    id: str = Field(..., description="Node ID")
    size: str = Field("", description="Node size")
    rack: str = Field("", description="Rack the node is placed in")
    public_address: str = Field("", alias="publicAddress", description="Public IP address")
    private_address: str = Field("", alias="privateAddress", description="Private IP address")
    status: str = Field("", alias="nodeStatus", description="Node status, e.g. RUNNING")
    spark_master: bool = Field(False, alias="sparkMaster")
    spark_jobserver: bool = Field(False, alias="sparkJobserver")
    zeppelin: bool = Field(False)

    @property
    def is_running(self) -> bool:
        """Whether the node reports the RUNNING status."""
        return self.status == RUNNING_STATUS


class DataCentre(UpstreamModel):
    """A data centre of a cluster and its nodes."""

    id: str = Field("", description="Data centre ID")
    name: str = Field("", description="Data centre name")
    provider: str = Field("", description="Cloud provider")
    cdc_network: Any = Field(None, alias="cdcNetwork", description="CDC network, as reported by the API")
    nodes: List[Node] = Field(default_factory=list)


class ClusterStatus(UpstreamModel):
    """Response of the provisioning API for a single cluster."""

    data_centres: List[DataCentre] = Field(..., alias="dataCentres")

    @property
    def nodes(self) -> List[Node]:
        """All nodes of all data centres, in response order."""
        return [node for dc in self.data_centres for node in dc.nodes]


class MetricValue(UpstreamModel):
    """A single timestamped value of a metric sample.

    Values are strings in the API. They are kept as received and converted by the decoder,
    which reports unusable values as 0.
    """

    value: Any = None
    time: Any = None


class MetricSample(UpstreamModel):
    """A metric reported by the monitoring API for one node."""

    name: str = Field(..., alias="metric", description="Metric name, e.g. cpuUtilization")
    type: str = Field("", description="Metric subtype, e.g. pendingtasks")
    unit: str = Field("", description="Unit reported by the API")
    values: List[MetricValue] = Field(default_factory=list)


class NodeMetrics(UpstreamModel):
    """Monitoring API response element for one node."""

    id: str = Field("", description="Node ID")
    payload: List[MetricSample] = Field(default_factory=list)


class MetricKind(str, Enum):
    """Prometheus metric kinds emitted by the exporter."""

    GAUGE = "gauge"
    COUNTER = "counter"


class Observation(BaseModel):
    """One normalized metric value with its labels."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Fully qualified metric name")
    kind: MetricKind = Field(MetricKind.GAUGE, description="Metric kind")
    value: float = Field(..., description="Metric value")
    labels: Dict[str, str] = Field(default_factory=dict, description="Metric labels")


class ClusterIdentity(BaseModel):
    """Labels identifying a cluster, captured from the cluster list of a scrape."""

    model_config = ConfigDict(frozen=True)

    cluster_id: str
    cluster_name: str

    @classmethod
    def from_cluster(cls, cluster: Cluster) -> "ClusterIdentity":
        """Capture the identity of a decoded cluster."""
        return cls(cluster_id=cluster.id, cluster_name=cluster.name)

    @property
    def labels(self) -> Dict[str, str]:
        """Cluster labels of cluster level observations."""
        return {"clusterId": self.cluster_id, "clusterName": self.cluster_name}


class NodeIdentity(BaseModel):
    """Labels identifying a node, captured once per node and scrape."""

    model_config = ConfigDict(frozen=True)

    cluster_id: str
    cluster_name: str
    node_id: str
    node_public_ip: str
    node_private_ip: str
    rack: str

    @classmethod
    def from_records(cls, cluster: Cluster, node: Node) -> "NodeIdentity":
        """Capture the identity of a node from the records fetched in the current scrape."""
        return cls(
            cluster_id=cluster.id,
            cluster_name=cluster.name,
            node_id=node.id,
            node_public_ip=node.public_address,
            node_private_ip=node.private_address,
            rack=node.rack,
        )

    @property
    def labels(self) -> Dict[str, str]:
        """Full identity labels of node level observations."""
        return {
            "clusterId": self.cluster_id,
            "clusterName": self.cluster_name,
            "nodeId": self.node_id,
            "nodePublicIp": self.node_public_ip,
            "nodePrivateIp": self.node_private_ip,
            "rack": self.rack,
        }


class ScrapeStatus(str, Enum):
    """Outcome of collecting one cluster."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class ClusterScrapeInfo(BaseModel):
    """Result of collecting one cluster during a scrape."""

    cluster_id: str = Field(..., description="Cluster ID")
    cluster_name: str = Field("", description="Cluster name")
    status: ScrapeStatus = Field(..., description="Collection status")
    nodes: int = Field(0, description="Number of nodes found in the cluster status")
    failed_nodes: int = Field(0, description="Number of nodes whose metrics could not be collected")
    error: Optional[str] = Field(None, description="Error message if failed")


class ScrapeSummary(BaseModel):
    """Summary of one scrape across all clusters."""

    total_clusters: int = Field(..., description="Total number of clusters listed")
    failed_clusters: int = Field(..., description="Clusters whose status could not be collected")
    total_nodes: int = Field(..., description="Total number of nodes found")
    failed_nodes: int = Field(..., description="Nodes whose metrics could not be collected")
    observations: int = Field(..., description="Number of observations written to the sink")
    clusters: List[ClusterScrapeInfo] = Field(default_factory=list, description="Per-cluster results")
    duration_seconds: float = Field(..., description="Total scrape duration in seconds")

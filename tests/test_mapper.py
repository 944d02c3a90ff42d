"""Unit tests for the metric mapping table."""

import pytest

from instaclustr_exporter.collector.mapper import (
    METRIC_DEFINITIONS,
    NODE_LABELS,
    SAMPLE_MAPPINGS,
    map_cluster,
    map_node,
    map_node_metrics,
    map_sample,
)
from instaclustr_exporter.collector.schemas import (
    Cluster,
    MetricKind,
    MetricSample,
    MetricValue,
    Node,
    NodeIdentity,
    NodeMetrics,
)


@pytest.fixture
def cluster():
    return Cluster(id="c1", name="prod", node_count=3, running_node_count=2, derived_status="RUNNING")


@pytest.fixture
def node():
    return Node(id="n1", rack="rack-a", public_address="1.2.3.4", private_address="10.0.0.1", status="RUNNING")


@pytest.fixture
def identity(cluster, node):
    return NodeIdentity.from_records(cluster, node)


def _sample(name, type_, value):
    return MetricSample(name=name, type=type_, values=[MetricValue(value=value)])


def test_map_cluster(cluster):
    observations = {obs.name: obs for obs in map_cluster(cluster)}

    assert {name: obs.value for name, obs in observations.items()} == {
        "cassandra_cluster_info": 1.0,
        "cassandra_cluster_running": 1.0,
        "cassandra_cluster_nodes": 3.0,
        "cassandra_cluster_nodes_running": 2.0,
    }
    assert all(obs.labels == {"clusterId": "c1", "clusterName": "prod"} for obs in observations.values())


@pytest.mark.parametrize("status", ["PROVISIONING", "running", "", "DELETED"])
def test_cluster_not_running(status):
    (_, running, _, _) = map_cluster(Cluster(id="c1", derived_status=status))

    assert running.name == "cassandra_cluster_running"
    assert running.value == 0.0


def test_map_node(identity, node):
    info, running = map_node(identity, node)

    assert (info.name, info.value) == ("cassandra_node_info", 1.0)
    assert (running.name, running.value) == ("cassandra_node_running", 1.0)
    assert info.labels == {
        "clusterId": "c1",
        "clusterName": "prod",
        "nodeId": "n1",
        "nodePublicIp": "1.2.3.4",
        "nodePrivateIp": "10.0.0.1",
        "rack": "rack-a",
    }


def test_node_not_running(identity):
    _, running = map_node(identity, Node(id="n1", status="STOPPED"))

    assert running.value == 0.0


@pytest.mark.parametrize(
    "name, type_, value, expected_name, expected_value",
    [
        ("cpuUtilization", "percentage", "2.5884383", "cassandra_node_cpu_utilization_percentage", 2.5884383),
        ("diskUtilization", "percentage", "55.1", "cassandra_node_disk_utilization_percentage", 55.1),
        ("cassandraReads", "count", "10", "cassandra_node_reads_per_second", 10.0),
        ("cassandraWrites", "count", "20", "cassandra_node_writes_per_second", 20.0),
        ("compactions", "pendingtasks", "4", "cassandra_node_compactions", 4.0),
        ("repairs", "pendingtasks", "3", "cassandra_node_repairs_pending", 3.0),
        ("repairs", "activetasks", "1", "cassandra_node_repairs_active", 1.0),
        ("repairs", "pendingtasks", "N/A", "cassandra_node_repairs_pending", 0.0),
    ],
)
def test_map_sample(identity, name, type_, value, expected_name, expected_value):
    observation = map_sample(identity, _sample(name, type_, value))

    assert observation.name == expected_name
    assert observation.value == expected_value
    assert observation.kind == MetricKind.GAUGE
    assert observation.labels == identity.labels


@pytest.mark.parametrize(
    "name, type_, expected_name",
    [
        ("clientRequestRead", "latency_per_operation", "cassandra_node_client_request_read_latency"),
        ("clientRequestRead", "95thPercentile", "cassandra_node_client_request_read_percentile"),
        ("clientRequestWrite", "latency_per_operation", "cassandra_node_client_request_write_latency"),
        ("clientRequestWrite", "95thPercentile", "cassandra_node_client_request_write_percentile"),
    ],
)
def test_client_request_latency_in_seconds(identity, name, type_, expected_name):
    observation = map_sample(identity, _sample(name, type_, "1500"))

    assert observation.name == expected_name
    assert observation.value == pytest.approx(0.0015)


@pytest.mark.parametrize(
    "name, type_",
    [("repairs", "failedtasks"), ("clientRequestRead", "99thPercentile"), ("heapUsage", ""), ("", "")],
)
def test_unknown_sample_dropped(identity, name, type_):
    assert map_sample(identity, _sample(name, type_, "1")) is None


def test_map_node_metrics_skips_unknown(identity):
    responses = [
        NodeMetrics(
            id="n1",
            payload=[
                _sample("cpuUtilization", "percentage", "10"),
                _sample("heapUsage", "", "99"),
                _sample("repairs", "activetasks", "2"),
            ],
        )
    ]

    observations = map_node_metrics(identity, responses)

    assert [obs.name for obs in observations] == [
        "cassandra_node_cpu_utilization_percentage",
        "cassandra_node_repairs_active",
    ]


def test_definitions_table():
    """Test that every mapped metric is described with the node label set."""
    assert len(METRIC_DEFINITIONS) == 17
    for definition in SAMPLE_MAPPINGS.values():
        assert METRIC_DEFINITIONS[definition.name] is definition
        assert definition.label_names == NODE_LABELS
        assert definition.name.startswith("cassandra_node_")
        assert definition.documentation

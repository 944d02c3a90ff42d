"""Unit tests for the observation sink and its Prometheus rendering."""

import threading

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily

from instaclustr_exporter.collector.mapper import CLUSTER_INFO, NODE_CPU_UTILIZATION, MetricDefinition
from instaclustr_exporter.collector.schemas import MetricKind, Observation
from instaclustr_exporter.collector.sink import ObservationSink, SinkCollector, render_exposition


CLUSTER_LABELS = {"clusterId": "c1", "clusterName": "prod"}


def test_add_and_snapshot():
    sink = ObservationSink()
    sink.add(CLUSTER_INFO.observe(1, CLUSTER_LABELS))

    snapshot = sink.snapshot()
    snapshot.clear()

    assert len(sink) == 1
    assert sink.snapshot()[0].value == 1.0


def test_concurrent_batches_stay_contiguous():
    """Test that batches written from several threads are never interleaved."""
    sink = ObservationSink()

    def write(node_id):
        labels = {"nodeId": node_id}
        for _ in range(50):
            sink.extend([Observation(name=f"batch_{i}", value=i, labels=labels) for i in range(5)])

    threads = [threading.Thread(target=write, args=(f"n{i}",)) for i in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    observations = sink.snapshot()
    assert len(observations) == 4 * 50 * 5
    for start in range(0, len(observations), 5):
        batch = observations[start : start + 5]
        assert [obs.name for obs in batch] == [f"batch_{i}" for i in range(5)]
        assert len({obs.labels["nodeId"] for obs in batch}) == 1


def test_render_exposition():
    sink = ObservationSink()
    sink.extend(
        [
            CLUSTER_INFO.observe(1, CLUSTER_LABELS),
            CLUSTER_INFO.observe(1, {"clusterId": "c2", "clusterName": "staging"}),
        ]
    )

    lines = render_exposition(sink).decode().splitlines()

    assert lines == [
        "# HELP cassandra_cluster_info A mapping between the clusterId and clusterName",
        "# TYPE cassandra_cluster_info gauge",
        'cassandra_cluster_info{clusterId="c1",clusterName="prod"} 1.0',
        'cassandra_cluster_info{clusterId="c2",clusterName="staging"} 1.0',
    ]


def test_render_orders_labels_by_definition():
    sink = ObservationSink()
    labels = {
        "rack": "r1",
        "nodePrivateIp": "10.0.0.1",
        "nodePublicIp": "1.2.3.4",
        "nodeId": "n1",
        "clusterName": "prod",
        "clusterId": "c1",
    }
    sink.add(NODE_CPU_UTILIZATION.observe(12.5, labels))

    text = render_exposition(sink).decode()

    assert (
        'cassandra_node_cpu_utilization_percentage{clusterId="c1",clusterName="prod",nodeId="n1",'
        'nodePublicIp="1.2.3.4",nodePrivateIp="10.0.0.1",rack="r1"} 12.5'
    ) in text.splitlines()


def test_render_empty_sink():
    assert render_exposition(ObservationSink()) == b""


def test_collector_drops_undefined_metrics():
    sink = ObservationSink()
    sink.add(Observation(name="cassandra_unknown", value=1.0))
    sink.add(CLUSTER_INFO.observe(1, CLUSTER_LABELS))

    families = list(SinkCollector(sink).collect())

    assert [family.name for family in families] == ["cassandra_cluster_info"]
    assert isinstance(families[0], GaugeMetricFamily)


def test_collector_counter_families():
    definition = MetricDefinition("cassandra_test_requests", "Requests", ("clusterId",), kind=MetricKind.COUNTER)
    sink = ObservationSink()
    sink.add(definition.observe(5, {"clusterId": "c1"}))

    (family,) = SinkCollector(sink, {definition.name: definition}).collect()

    assert isinstance(family, CounterMetricFamily)
    assert family.type == "counter"
    assert family.samples[0].value == 5.0


def test_describe_lists_every_definition():
    names = {family.name for family in SinkCollector(ObservationSink()).describe()}

    assert "cassandra_cluster_info" in names
    assert "cassandra_node_client_request_write_percentile" in names


def test_duplicate_series_keep_first():
    """Test that a repeated series is rendered once with its first value."""
    sink = ObservationSink()
    sink.extend(
        [
            CLUSTER_INFO.observe(1, CLUSTER_LABELS),
            NODE_CPU_UTILIZATION.observe(10, {"nodeId": "n1"}),
            NODE_CPU_UTILIZATION.observe(20, {"nodeId": "n1"}),
            NODE_CPU_UTILIZATION.observe(30, {"nodeId": "n2"}),
            CLUSTER_INFO.observe(1, CLUSTER_LABELS),
        ]
    )

    families = {family.name: family for family in SinkCollector(sink).collect()}

    assert len(families["cassandra_cluster_info"].samples) == 1
    cpu = families["cassandra_node_cpu_utilization_percentage"].samples
    assert [(sample.labels["nodeId"], sample.value) for sample in cpu] == [("n1", 10.0), ("n2", 30.0)]

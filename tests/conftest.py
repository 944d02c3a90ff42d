"""Shared fixtures: substitute Instaclustr APIs serving the bundled mock data."""

import asyncio
import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pytest

from instaclustr_exporter.collector.pipeline import CollectionPipeline
from instaclustr_exporter.collector.sink import ObservationSink
from instaclustr_exporter.commons.exceptions import UpstreamRequestError
from instaclustr_exporter.mock.server import DEFAULT_DATA_DIR


PROD_CLUSTER_ID = "7d1a7d3b-6a5c-4a4e-9b7b-2f0c8a1e5a10"
STAGING_CLUSTER_ID = "b2f4c9e1-3d8a-4f6b-a1c2-5e9d7f3a8b21"
PROD_NODE_IDS = ("1f8c2e4a-9b3d-4c5e-8f7a-6d2b1c3e4f50", "2a9d3f5b-0c4e-4d6f-9a8b-7e3c2d4f5a61")
STAGING_NODE_ID = "3b0e4a6c-1d5f-4e7a-ab9c-8f4d3e5a6b72"


def _read(path: Path, url: str) -> bytes:
    if not path.is_file():
        raise UpstreamRequestError("HTTP 404 Not Found", url=url, status_code=404)
    return path.read_bytes()


class FakeProvisioning:
    """Provisioning API answering from a mock data directory."""

    def __init__(
        self,
        data_dir: Path = DEFAULT_DATA_DIR,
        clusters: Optional[List[dict]] = None,
        list_error: Optional[Exception] = None,
        list_body: Optional[bytes] = None,
    ):
        self.data_dir = Path(data_dir)
        self.clusters = clusters
        self.list_error = list_error
        self.list_body = list_body
        self.status_calls: List[str] = []

    async def list_clusters(self) -> bytes:
        if self.list_error is not None:
            raise self.list_error
        if self.list_body is not None:
            return self.list_body
        if self.clusters is not None:
            return json.dumps(self.clusters).encode()
        return _read(self.data_dir / "listAllClusters.json", "/provisioning/v1")

    async def get_cluster_status(self, cluster_id: str) -> bytes:
        self.status_calls.append(cluster_id)
        return _read(self.data_dir / cluster_id / "getClusterStatus.json", f"/provisioning/v1/{cluster_id}")


class FakeMonitoring:
    """Monitoring API answering from a mock data directory, with optional failures and delays."""

    def __init__(
        self,
        data_dir: Path = DEFAULT_DATA_DIR,
        failing_nodes: Iterable[str] = (),
        delays: Optional[Dict[str, float]] = None,
    ):
        self.data_dir = Path(data_dir)
        self.failing_nodes = set(failing_nodes)
        self.delays = delays or {}
        self.queries: Dict[str, str] = {}
        self.in_flight = 0
        self.max_in_flight = 0

    async def get_node_metrics(self, node_id: str, metric_query: str) -> bytes:
        self.queries[node_id] = metric_query
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(node_id, 0.01))
            if node_id in self.failing_nodes:
                raise UpstreamRequestError(
                    "HTTP Internal Server Error 500 Server", url=f"/monitoring/v1/nodes/{node_id}", status_code=500
                )
            return _read(self.data_dir / node_id / "getAllNodeMetrics.json", f"/monitoring/v1/nodes/{node_id}")
        finally:
            self.in_flight -= 1


def bundled_clusters() -> List[dict]:
    return json.loads((DEFAULT_DATA_DIR / "listAllClusters.json").read_text())


@pytest.fixture
def provisioning():
    """Provisioning API serving the bundled data."""
    return FakeProvisioning()


@pytest.fixture
def monitoring():
    """Monitoring API serving the bundled data."""
    return FakeMonitoring()


@pytest.fixture
def pipeline(provisioning, monitoring):
    return CollectionPipeline(provisioning, monitoring)


@pytest.fixture
def sink():
    return ObservationSink()

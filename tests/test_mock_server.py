"""Tests for the mock Instaclustr API."""

import pytest
from fastapi.testclient import TestClient

from instaclustr_exporter.mock.server import DEFAULT_DATA_DIR, NOT_FOUND_RESPONSE, _serve_file, create_mock_app

from .conftest import PROD_CLUSTER_ID, PROD_NODE_IDS, STAGING_NODE_ID


@pytest.fixture
def client():
    return TestClient(create_mock_app())


def test_list_clusters(client):
    response = client.get("/provisioning/v1")

    assert response.status_code == 200
    assert [cluster["name"] for cluster in response.json()] == ["production-cassandra", "staging-cassandra"]


def test_cluster_status(client):
    response = client.get(f"/provisioning/v1/{PROD_CLUSTER_ID}")

    assert response.status_code == 200
    nodes = response.json()["dataCentres"][0]["nodes"]
    assert [node["id"] for node in nodes] == list(PROD_NODE_IDS)


def test_unknown_cluster(client):
    response = client.get("/provisioning/v1/does-not-exist")

    assert response.status_code == 404
    assert response.json() == NOT_FOUND_RESPONSE


def test_node_metrics(client):
    response = client.get(f"/monitoring/v1/nodes/{STAGING_NODE_ID}", params={"metrics": "n::cpuUtilization"})

    assert response.status_code == 200
    assert response.json()[0]["id"] == STAGING_NODE_ID


def test_unknown_node(client):
    response = client.get("/monitoring/v1/nodes/does-not-exist")

    assert response.status_code == 404
    assert response.json()["status"] == 404


def test_resource_ids_are_single_path_components():
    response = _serve_file(DEFAULT_DATA_DIR, "..", "listAllClusters.json")

    assert response.status_code == 404


def test_unreadable_file(tmp_path):
    (tmp_path / "broken").mkdir()
    (tmp_path / "broken" / "getClusterStatus.json").write_text("{truncated")
    client = TestClient(create_mock_app(tmp_path))

    response = client.get("/provisioning/v1/broken")

    assert response.status_code == 500
    assert response.json()["status"] == 500


def test_missing_cluster_list(tmp_path):
    client = TestClient(create_mock_app(tmp_path))

    assert client.get("/provisioning/v1").status_code == 404


def test_health_and_shutdown(client):
    assert client.get("/health").text == "OK"

    assert client.get("/shutdown").text == "Shutting down server"
    assert client.get("/shutdown").text == "Shutting down server"
    assert client.app.state.shutdown_requested is True

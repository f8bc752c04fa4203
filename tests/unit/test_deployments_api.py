"""
Unit tests for deployment notification and container endpoints.
"""

import pytest

from fakes import ADMIN_KEY
from pipeline_sync.models.board import Column


ADMIN = {"X-API-Key": ADMIN_KEY}


class TestDeployNotification:
    """Test CI deployment callbacks."""

    def test_success(self, api_client, board):
        response = api_client.post("/api/docker/deploy-notification", json={
            "repository_name": "widget-api",
            "branch_name": "feature-x",
            "build_number": "12",
            "image_tag": "1.4.3",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["board_updated"] is True
        assert data["container"]["name"] == "widget-api-prod"
        columns = board.by_name("feature-x").columns
        assert columns[Column.IMAGE_VERSION] == "1.4.3"
        assert columns[Column.DEPLOY_STATUS] == "Success"

    def test_unknown_container_returns_502(self, api_client, board):
        response = api_client.post("/api/docker/deploy-notification", json={
            "container_name": "ghost",
            "feature_name": "feature-x",
        })

        assert response.status_code == 502
        assert response.json()["success"] is False
        assert board.items == {}

    def test_board_failure_is_reported(self, api_client, board):
        board.fail = True

        response = api_client.post("/api/docker/deploy-notification", json={
            "container_name": "widget-api-prod",
            "feature_name": "feature-x",
        })

        assert response.status_code == 200
        assert response.json()["board_updated"] is False


class TestDeployFailure:
    """Test CI deployment failure callbacks."""

    def test_requires_name(self, api_client):
        response = api_client.post("/api/docker/deploy-failure", json={"error_message": "boom"})

        assert response.status_code == 400

    def test_records_failure(self, api_client, board):
        response = api_client.post("/api/docker/deploy-failure", json={
            "branch_name": "feature-x",
            "error_message": "Image pull failed",
        })

        assert response.status_code == 200
        item = board.by_name("feature-x")
        assert item.columns[Column.DEPLOY_STATUS] == "Failed"
        assert board.comments == [(item.id, "Deployment failed: Image pull failed")]


class TestAdminRoutes:
    """Test API-key protected container management."""

    @pytest.mark.parametrize("method,path", [
        ("get", "/api/docker/containers"),
        ("get", "/api/docker/status/widget-api-prod"),
        ("post", "/api/docker/stop/widget-api-prod"),
        ("get", "/api/docker/logs/widget-api-prod"),
    ])
    def test_require_api_key(self, api_client, method, path):
        response = getattr(api_client, method)(path)

        assert response.status_code == 401

    def test_update_board(self, api_client, board):
        response = api_client.post(
            "/api/docker/update-board",
            json={"container_name": "widget-api-prod", "feature_name": "feature-x"},
            headers=ADMIN,
        )

        assert response.status_code == 200
        assert board.by_name("feature-x").columns[Column.CONTAINER_STATUS] == "Running"

    def test_update_board_unknown_container(self, api_client):
        response = api_client.post(
            "/api/docker/update-board",
            json={"container_name": "ghost"},
            headers=ADMIN,
        )

        assert response.status_code == 404

    def test_list_containers(self, api_client):
        response = api_client.get("/api/docker/containers", headers=ADMIN)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert [c["name"] for c in data["containers"]] == ["widget-api-prod"]

    def test_list_containers_runtime_down(self, api_client, services):
        services.docker.fail_list = True

        response = api_client.get("/api/docker/containers", headers=ADMIN)

        assert response.status_code == 502

    def test_status(self, api_client):
        response = api_client.get("/api/docker/status/widget-api-prod", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["health"] == "healthy"

    def test_status_unknown(self, api_client):
        response = api_client.get("/api/docker/status/ghost", headers=ADMIN)

        assert response.status_code == 404

    def test_stop_and_start(self, api_client, services):
        response = api_client.post("/api/docker/stop/widget-api-prod", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert services.docker.records["widget-api-prod"].status == "exited"

        api_client.post("/api/docker/start/widget-api-prod", headers=ADMIN)
        assert services.docker.records["widget-api-prod"].status == "running"

    def test_restart_unknown_container(self, api_client):
        response = api_client.post("/api/docker/restart/ghost", headers=ADMIN)

        assert response.status_code == 502

    def test_logs(self, api_client):
        response = api_client.get("/api/docker/logs/widget-api-prod?lines=3", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["data"]["logs"] == "log line 1\nlog line 2\nlog line 3"

    def test_logs_line_limit(self, api_client):
        response = api_client.get("/api/docker/logs/widget-api-prod?lines=0", headers=ADMIN)

        assert response.status_code == 422

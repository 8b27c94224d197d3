"""Tests for the worker task routes."""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from leadwire.api.factory import create_app
from leadwire.api.task_auth import TASK_SECRET_HEADER
from leadwire.services.notifications import NewNotification, NotificationType

from helpers import TEST_TASK_SECRET, OTHER_PHONE, superbot_payload

TASK_HEADERS = {TASK_SECRET_HEADER: TEST_TASK_SECRET}


@pytest.fixture
def client(auth_env, pipeline_fixture):
    return TestClient(create_app(role="worker"))


class TestAuth:
    @pytest.mark.parametrize(
        "path",
        ["/tasks/webhooks/process-queue", "/tasks/notifications/cleanup"],
    )
    def test_no_secret_returns_401(self, client, path):
        response = client.post(path)
        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "unauthorized"}

    def test_wrong_secret_returns_401(self, client):
        response = client.post(
            "/tasks/webhooks/process-queue",
            headers={TASK_SECRET_HEADER: "wrong"},
        )
        assert response.status_code == 401

    def test_not_mounted_on_public(self, auth_env, pipeline_fixture):
        client = TestClient(create_app(role="public"))
        response = client.post("/tasks/webhooks/process-queue", headers=TASK_HEADERS)
        assert response.status_code == 404


class TestProcessQueue:
    def test_empty_queue(self, client):
        response = client.post("/tasks/webhooks/process-queue", headers=TASK_HEADERS)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["processed"] == 0
        assert data["failed"] == 0

    def test_drains_deferred_messages(self, client, pipeline_fixture):
        ingestion = pipeline_fixture.ingestion
        ingestion.process(superbot_payload(message_id="m1"))
        ingestion.process(superbot_payload(message_id="m2", text="e 2 retentores"))
        ingestion.process(superbot_payload(message_id="o1", sender_phone=OTHER_PHONE, text="Oi"))
        ingestion.process(
            superbot_payload(message_id="o2", sender_phone=OTHER_PHONE, text="Tudo bem?")
        )
        assert pipeline_fixture.queue.size() == 2

        response = client.post("/tasks/webhooks/process-queue", headers=TASK_HEADERS)
        data = response.json()["data"]
        assert data["processed"] == 2
        assert data["senders"] == 2
        assert pipeline_fixture.queue.size() == 0

    def test_queue_size_on_health(self, client, pipeline_fixture):
        ingestion = pipeline_fixture.ingestion
        ingestion.process(superbot_payload(message_id="m1"))
        ingestion.process(superbot_payload(message_id="m2"))

        response = client.get("/tasks/health")
        assert response.json()["queue_size"] == 1


class TestNotificationCleanup:
    def test_deletes_old_rows(self, client, pipeline_fixture):
        pipeline_fixture.dispatcher.create(
            NewNotification(user_id=7, type=NotificationType.SYSTEM, title="velha", message="m")
        )
        pipeline_fixture.clock.advance(timedelta(days=40).total_seconds())
        pipeline_fixture.dispatcher.create(
            NewNotification(user_id=7, type=NotificationType.SYSTEM, title="nova", message="m")
        )

        response = client.post("/tasks/notifications/cleanup", headers=TASK_HEADERS)
        assert response.json() == {"success": True, "data": {"deleted": 1}}
        assert [r["title"] for r in pipeline_fixture.notification_store.rows] == ["nova"]

    def test_custom_retention(self, client, pipeline_fixture):
        pipeline_fixture.dispatcher.create(
            NewNotification(user_id=7, type=NotificationType.SYSTEM, title="a", message="m")
        )
        pipeline_fixture.clock.advance(timedelta(days=3).total_seconds())

        response = client.post(
            "/tasks/notifications/cleanup",
            params={"days": 2},
            headers=TASK_HEADERS,
        )
        assert response.json()["data"]["deleted"] == 1

    def test_days_must_be_positive(self, client):
        response = client.post(
            "/tasks/notifications/cleanup",
            params={"days": 0},
            headers=TASK_HEADERS,
        )
        assert response.status_code == 422

"""
Tests for Cloud Tasks enqueueing.

The Cloud Tasks client is mocked; no Google Cloud project is required.
"""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

from google.api_core.exceptions import AlreadyExists

from delayguard.services.poll_schedule import PollPriority
from delayguard.worker.cloud_tasks import create_carrier_poll_task, enqueue_carrier_poll

MODULE = "delayguard.worker.cloud_tasks"


class TestLocalMode:
    @patch(f"{MODULE}.PROJECT_ID", "")
    def test_local_task_name(self):
        """Test tasks are only logged when no project is configured"""
        name = create_carrier_poll_task("shipment-1", PollPriority.HIGH)

        assert name == "local-task/poll-shipment-1"

    @patch(f"{MODULE}.PROJECT_ID", "")
    def test_local_enqueue_reports_created(self):
        assert enqueue_carrier_poll("shipment-1", PollPriority.NORMAL) is True


@patch(f"{MODULE}.PROJECT_ID", "test-project")
@patch(f"{MODULE}.get_service_account_email", return_value="worker@test.iam")
@patch(f"{MODULE}.get_worker_service_url", return_value="https://worker.example.run.app")
@patch(f"{MODULE}.tasks_v2.CloudTasksClient")
class TestCloudMode:
    def _client(self, client_cls: MagicMock) -> MagicMock:
        client = client_cls.return_value
        client.queue_path.return_value = "projects/p/locations/l/queues/q"
        return client

    def test_creates_named_task(self, client_cls, *_):
        """Test the task name is derived from the shipment id"""
        client = self._client(client_cls)
        client.create_task.return_value.name = "projects/p/.../tasks/poll-shipment-1"

        name = create_carrier_poll_task("shipment-1", PollPriority.URGENT)

        assert name == "projects/p/.../tasks/poll-shipment-1"
        task = client.create_task.call_args.kwargs["task"]
        assert task.name.endswith("/tasks/poll-shipment-1")
        assert task.http_request.url == (
            "https://worker.example.run.app/tasks/carrier-poll"
        )
        body = json.loads(task.http_request.body)
        assert body == {"shipment_id": "shipment-1", "priority": 1}
        assert task.http_request.oidc_token.service_account_email == (
            "worker@test.iam"
        )

    def test_already_queued(self, client_cls, *_):
        """Test an existing task for the shipment is not an error"""
        client = self._client(client_cls)
        client.create_task.side_effect = AlreadyExists("task exists")

        assert create_carrier_poll_task("shipment-1") is None
        assert enqueue_carrier_poll("shipment-1", PollPriority.LOW) is False

    def test_delayed_task_is_scheduled(self, client_cls, *_):
        """Test delay_seconds sets the task schedule time"""
        client = self._client(client_cls)

        before = datetime.now(timezone.utc)
        create_carrier_poll_task("shipment-1", delay_seconds=900)

        task = client.create_task.call_args.kwargs["task"]
        assert task.schedule_time >= before + timedelta(seconds=899)

    def test_immediate_task_has_no_schedule_time(self, client_cls, *_):
        client = self._client(client_cls)

        create_carrier_poll_task("shipment-1")

        task = client.create_task.call_args.kwargs["task"]
        assert "schedule_time" not in task

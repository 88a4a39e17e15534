"""
Cloud Tasks client for enqueuing carrier poll tasks.

Each task targets the worker's /tasks/carrier-poll endpoint. Task names
are derived from the shipment id, so Cloud Tasks rejects a second task
for a shipment that is already queued.
"""

import json
import logging
import os
from datetime import timedelta
from typing import Any

from google.api_core.exceptions import AlreadyExists
from google.cloud import tasks_v2
from google.protobuf import timestamp_pb2

from delayguard.carriers.token_cache import utcnow
from delayguard.models.task import CarrierPollTask
from delayguard.services.poll_schedule import PollPriority, poll_job_id
from delayguard.utils.gcp import get_service_account_email, get_worker_service_url

PROJECT_ID = os.getenv("GOOGLE_CLOUD_PROJECT", "")
LOCATION = os.getenv("GOOGLE_CLOUD_LOCATION", "us-central1")
QUEUE_NAME = os.getenv("CLOUD_TASKS_QUEUE", "carrier-poll-tasks")

logger = logging.getLogger(__name__)


def create_carrier_poll_task(
    shipment_id: str,
    priority: PollPriority = PollPriority.NORMAL,
    delay_seconds: int = 0,
) -> str | None:
    """
    Create a Cloud Task to poll the carrier for one shipment.

    Args:
        shipment_id: Shipment to poll
        priority: Poll priority, carried in the payload
        delay_seconds: Optional delay before task execution

    Returns:
        Task name, or None if a task for the shipment already exists
    """
    payload = CarrierPollTask(shipment_id=shipment_id, priority=int(priority))

    return _create_task(
        endpoint="/tasks/carrier-poll",
        payload=payload.model_dump(),
        task_id=poll_job_id(shipment_id),
        delay_seconds=delay_seconds,
    )


def enqueue_carrier_poll(shipment_id: str, priority: PollPriority) -> bool:
    """Enqueue callback for the poll scheduler; False when already queued."""
    return create_carrier_poll_task(shipment_id, priority) is not None


def _oidc_token(worker_url: str) -> tasks_v2.OidcToken | None:
    """OIDC token for the worker; Cloud Run only accepts it over https."""
    service_account = get_service_account_email()
    if not (worker_url.startswith("https://") and service_account):
        return None
    return tasks_v2.OidcToken(
        service_account_email=service_account, audience=worker_url
    )


def _create_task(
    endpoint: str,
    payload: dict[str, Any],
    task_id: str,
    delay_seconds: int = 0,
) -> str | None:
    """
    Create a named Cloud Task, or log it locally when no project is configured.

    Returns:
        Task name (full resource path or local name), None if it already exists
    """
    if not PROJECT_ID:
        print(f"[LOCAL] Would create task: {task_id} -> {endpoint} {payload}")
        return f"local-task/{task_id}"

    client = tasks_v2.CloudTasksClient()
    queue_path = client.queue_path(PROJECT_ID, LOCATION, QUEUE_NAME)
    worker_url = get_worker_service_url()

    task = tasks_v2.Task(
        name=f"{queue_path}/tasks/{task_id}",
        http_request=tasks_v2.HttpRequest(
            http_method=tasks_v2.HttpMethod.POST,
            url=worker_url + endpoint,
            headers={"Content-Type": "application/json"},
            body=json.dumps(payload).encode("utf-8"),
            oidc_token=_oidc_token(worker_url),
        ),
    )
    if delay_seconds > 0:
        run_at = timestamp_pb2.Timestamp()
        run_at.FromDatetime(utcnow() + timedelta(seconds=delay_seconds))
        task.schedule_time = run_at

    log_fields = {"task_id": task_id, "endpoint": endpoint, "queue": queue_path}
    try:
        created = client.create_task(parent=queue_path, task=task)
    except AlreadyExists:
        logger.info(
            "Poll task %s is already queued",
            task_id,
            extra={"json_fields": log_fields},
        )
        return None
    except Exception:
        logger.exception(
            "Failed to create poll task %s",
            task_id,
            extra={"json_fields": {**log_fields, "worker_url": worker_url}},
        )
        raise

    return created.name

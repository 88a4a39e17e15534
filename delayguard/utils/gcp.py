"""
Google Cloud helpers for addressing the worker service.

Cloud Tasks needs the worker's public URL and the service account used
to mint OIDC tokens for it.
"""

import os
from functools import lru_cache

import google.auth
import requests

WORKER_SERVICE_LOCATION = os.getenv("WORKER_SERVICE_LOCATION", "us-central1")
WORKER_SERVICE_NAME = os.getenv("WORKER_SERVICE_NAME", "delayguard-worker")

METADATA_EMAIL_URL = (
    "http://metadata.google.internal/computeMetadata/v1/"
    "instance/service-accounts/default/email"
)


@lru_cache(maxsize=1)
def get_credentials_info() -> tuple[str, str]:
    """
    Service account email and project number of the running credentials.

    Returns:
        (service_account_email, project_number), empty strings when unknown
    """
    try:
        credentials, project = google.auth.default()
        service_account = getattr(credentials, "service_account_email", "") or ""

        # Cloud Run reports "default"; the metadata server knows the real email
        if service_account == "default":
            try:
                resp = requests.get(
                    METADATA_EMAIL_URL,
                    headers={"Metadata-Flavor": "Google"},
                    timeout=2,
                )
                service_account = resp.text if resp.ok else ""
            except requests.RequestException:
                service_account = ""

        project_number = ""
        if project:
            from google.cloud import resourcemanager_v3

            client = resourcemanager_v3.ProjectsClient()
            project_resource = client.get_project(name=f"projects/{project}")
            project_number = project_resource.name.split("/")[-1]

        return service_account, project_number
    except Exception:
        return "", ""


def get_service_account_email() -> str:
    service_account, _ = get_credentials_info()
    return service_account


@lru_cache(maxsize=1)
def get_worker_service_url() -> str:
    """
    Worker service base URL.

    WORKER_SERVICE_URL wins when set; otherwise the deterministic Cloud Run
    URL https://{service}-{project_number}.{location}.run.app is used.

    Raises:
        ValueError: If the project number cannot be determined
    """
    explicit = os.getenv("WORKER_SERVICE_URL")
    if explicit:
        return explicit.rstrip("/")

    _, project_number = get_credentials_info()
    if not project_number:
        raise ValueError(
            "Cannot determine project number. "
            "Set WORKER_SERVICE_URL or GOOGLE_CLOUD_PROJECT with the "
            "Cloud Resource Manager API enabled."
        )

    return f"https://{WORKER_SERVICE_NAME}-{project_number}.{WORKER_SERVICE_LOCATION}.run.app"

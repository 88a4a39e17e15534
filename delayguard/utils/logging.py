"""
Logging configuration.

On Cloud Run (K_SERVICE is set) records go to Cloud Logging through
google-cloud-logging, which turns the "json_fields" extra into structured
payload fields. Locally, records are printed with those fields appended.
"""

import json
import logging
import os
import sys

# Chatty third-party loggers kept at WARNING
QUIET_LOGGERS = ("urllib3", "google.auth", "google.cloud.sql.connector")

_logging_configured = False


class LocalFormatter(logging.Formatter):
    """Formatter that appends the json_fields extra to the message."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        json_fields = getattr(record, "json_fields", None)
        if json_fields:
            message = f"{message} {json.dumps(json_fields, default=str, sort_keys=True)}"

        return message


def setup_logging(service_name: str = "delayguard"):
    """
    Configure the root logger once per process.

    Args:
        service_name: Name of the service for log identification
    """
    global _logging_configured

    if _logging_configured:
        return

    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO

    if os.getenv("K_SERVICE"):
        _setup_cloud_logging(service_name, level)
    else:
        _setup_local_logging(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _logging_configured = True


def _setup_cloud_logging(service_name: str, level: int):
    try:
        import google.cloud.logging

        client = google.cloud.logging.Client()
        client.setup_logging(log_level=level)

        logging.info("Cloud Logging configured for service: %s", service_name)
    except Exception as e:
        _setup_local_logging(level)
        logging.warning("Failed to setup Cloud Logging, using local logging: %s", e)


def _setup_local_logging(level: int):
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        LocalFormatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.addHandler(handler)

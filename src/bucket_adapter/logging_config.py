from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any


# Fields BucketClient attaches to its records, emitted in this order
TRANSFER_FIELDS = (
    "bucket",
    "operation",
    "key",
    "prefix",
    "destination",
    "ttl",
    "bytes",
    "etag",
    "pages",
    "objects",
    "elapsed_seconds",
)

# SDK loggers that are chatty at INFO/DEBUG (credential lookup, every HTTP request)
_SDK_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3")


def transfer_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {name: getattr(record, name) for name in TRANSFER_FIELDS if getattr(record, name, None) is not None}


def _timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds")


class JsonFormatter(logging.Formatter):
    """One JSON object per record; transfer fields sit at the top level so log queries can filter on key or bucket."""

    def __init__(self, service: str) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": _timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "service": self.service,
            "message": record.getMessage(),
        }
        payload.update(transfer_fields(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, separators=(",", ":"))


class TextFormatter(logging.Formatter):
    def __init__(self, service: str) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        line = f"{_timestamp(record)} {record.levelname} {record.name} service={self.service} {record.getMessage()}"
        fields = transfer_fields(record)
        if fields:
            line = f"{line} " + " ".join(f"{name}={value}" for name, value in fields.items())
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class BucketLogAdapter(logging.LoggerAdapter):
    """Stamps the bucket name on every record and keeps the per-call extra fields."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def bucket_logger(name: str, bucket: str) -> BucketLogAdapter:
    return BucketLogAdapter(logging.getLogger(name), {"bucket": bucket})


def configure_logging(
    level: str | None = None,
    service: str = "bucket_adapter",
    json_output: bool | None = None,
    sdk_level: str | None = None,
) -> None:
    """
    Install a single stdout handler on the root logger for applications embedding BucketClient.

    LOG_LEVEL, LOG_JSON and SDK_LOG_LEVEL are read when the matching argument is not given.
    The boto3/botocore/s3transfer/urllib3 loggers default to WARNING.
    """
    resolved_level = getattr(logging, (level or os.getenv("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    if json_output is None:
        json_output = os.getenv("LOG_JSON", "").strip().lower() in {"1", "true", "yes", "on"}

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonFormatter(service=service) if json_output else TextFormatter(service=service))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(resolved_level)

    resolved_sdk_level = getattr(logging, (sdk_level or os.getenv("SDK_LOG_LEVEL", "WARNING")).upper(), logging.WARNING)
    for name in _SDK_LOGGERS:
        logging.getLogger(name).setLevel(resolved_sdk_level)

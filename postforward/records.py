"""Structured log records emitted for each request lifecycle event."""

import json
import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional

_LOG_ID_ALPHABET = string.ascii_lowercase + string.digits
_LOG_ID_SUFFIX_LENGTH = 9

FALLBACK_ERROR_MESSAGE = "JSON serialization failed"


class LogType(str, Enum):
    REQUEST = "REQUEST"
    RESPONSE = "RESPONSE"
    BACKEND_ERROR = "BACKEND_ERROR"
    FORWARD_ERROR = "FORWARD_ERROR"
    RESPONSE_ERROR = "RESPONSE_ERROR"
    RESPONSE_LOG_ERROR = "RESPONSE_LOG_ERROR"
    REQUEST_ERROR = "REQUEST_ERROR"


class ErrorType(str, Enum):
    INVALID_BACKEND_RESPONSE = "INVALID_BACKEND_RESPONSE"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    LOGGING_ERROR = "LOGGING_ERROR"
    PROCESSING_ERROR = "PROCESSING_ERROR"


ERROR_TYPES = {
    LogType.BACKEND_ERROR: ErrorType.INVALID_BACKEND_RESPONSE,
    LogType.FORWARD_ERROR: ErrorType.NETWORK_ERROR,
    LogType.RESPONSE_ERROR: ErrorType.INVALID_RESPONSE,
    LogType.RESPONSE_LOG_ERROR: ErrorType.LOGGING_ERROR,
    LogType.REQUEST_ERROR: ErrorType.PROCESSING_ERROR,
}


def generate_log_id() -> str:
    """Return an id of the form log-<epoch millis>-<base36 suffix>.

    Only alphanumerics and hyphens, so the id is usable as a warehouse key.
    """
    millis = int(time.time() * 1000)
    suffix = "".join(random.choices(_LOG_ID_ALPHABET, k=_LOG_ID_SUFFIX_LENGTH))
    return f"log-{millis}-{suffix}"


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with milliseconds and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def parse_body(text: str) -> Any:
    """Return the parsed JSON value of *text*, or *text* itself if it is not JSON.

    NaN and Infinity are rejected, and input nested too deeply to decode is
    kept as raw text.
    """
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except (TypeError, ValueError, RecursionError):
        return text


def header_map(headers) -> dict:
    """Flatten headers to a name -> value dict, joining repeated names with ", "."""
    merged: dict = {}
    for name, value in headers.items():
        if name in merged:
            merged[name] = f"{merged[name]}, {value}"
        else:
            merged[name] = value
    return merged


@dataclass
class LogRecord:
    log_type: LogType
    log_id: str = field(default_factory=generate_log_id)
    timestamp: str = field(default_factory=utc_timestamp)

    request_method: Optional[str] = None
    request_url: Optional[str] = None
    backend_url: Optional[str] = None
    request_headers: Optional[dict] = None
    request_body: Any = None

    response_status: Optional[int] = None
    response_status_text: Optional[str] = None
    response_headers: Optional[dict] = None
    response_body: Any = None

    error_message: Optional[str] = None
    error_type: Optional[ErrorType] = None

    @property
    def created_at(self) -> str:
        return self.timestamp

    @property
    def partition_date(self) -> str:
        return self.timestamp.split("T")[0]

    # --- Variant constructors ---

    @classmethod
    def request(cls, method: str, url: str, backend_url: str,
                headers: Mapping[str, str], body: str) -> "LogRecord":
        return cls(
            log_type=LogType.REQUEST,
            request_method=method,
            request_url=url,
            backend_url=backend_url,
            request_headers=header_map(headers),
            request_body=parse_body(body),
        )

    @classmethod
    def response(cls, status: int, status_text: str,
                 headers: Mapping[str, str], body: str) -> "LogRecord":
        return cls(
            log_type=LogType.RESPONSE,
            response_status=status,
            response_status_text=status_text,
            response_headers=header_map(headers),
            response_body=parse_body(body),
        )

    @classmethod
    def error(cls, log_type: LogType, message: str,
              status: Optional[int] = None) -> "LogRecord":
        if log_type not in ERROR_TYPES:
            raise ValueError(f"{log_type.value} is not an error record type")
        return cls(
            log_type=log_type,
            error_message=message,
            error_type=ERROR_TYPES[log_type],
            response_status=status,
        )

    @classmethod
    def fallback(cls, log_type: LogType) -> "LogRecord":
        """Minimal record substituted when the full record cannot be serialized."""
        return cls(log_type=log_type, error_message=FALLBACK_ERROR_MESSAGE)

    # --- Output shapes ---

    def to_dict(self) -> dict:
        """Remote (warehouse) shape. Absent fields are omitted."""
        data = {
            "log_id": self.log_id,
            "timestamp": self.timestamp,
            "log_type": self.log_type.value,
            "request_method": self.request_method,
            "request_url": self.request_url,
            "backend_url": self.backend_url,
            "request_headers": self.request_headers,
            "request_body": self.request_body,
            "response_status": self.response_status,
            "response_status_text": self.response_status_text,
            "response_headers": self.response_headers,
            "response_body": self.response_body,
            "error_message": self.error_message,
            "error_type": self.error_type.value if self.error_type else None,
            "created_at": self.created_at,
            "partition_date": self.partition_date,
        }
        return {k: v for k, v in data.items() if v is not None}

    def to_console(self) -> dict:
        """Human-readable shape for local tailing."""
        if self.log_type is LogType.REQUEST:
            return {
                "timestamp": self.timestamp,
                "type": self.log_type.value,
                "method": self.request_method,
                "url": self.request_url,
                "backendUrl": self.backend_url,
                "headers": self.request_headers,
                "body": self.request_body,
            }
        if self.log_type is LogType.RESPONSE:
            return {
                "timestamp": self.timestamp,
                "type": self.log_type.value,
                "status": self.response_status,
                "statusText": self.response_status_text,
                "headers": self.response_headers,
                "body": self.response_body,
            }
        entry = {
            "timestamp": self.timestamp,
            "type": self.log_type.value,
            "error": self.error_message,
        }
        if self.response_status is not None:
            entry["status"] = self.response_status
        return entry

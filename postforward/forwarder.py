"""Relay a captured request to the backend and classify the outcome."""

import logging
from dataclasses import dataclass, field
from typing import Optional

import requests
from werkzeug.datastructures import Headers

from postforward.log_adapter import LogAdapter
from postforward.records import LogRecord, LogType, header_map

logger = logging.getLogger(__name__)

VERSION_HEADER = "x-serviceVersion"

# Recomputed by the transport for the outbound request
_SKIP_REQUEST_HEADERS = frozenset({
    "host", "content-length", "connection", "keep-alive", "transfer-encoding",
    "te", "trailer", "upgrade", "proxy-connection",
})


class BackendError(Exception):
    """The backend answered, but not with an ok response."""

    def __init__(self, backend_url: str, status: Optional[int]):
        self.backend_url = backend_url
        self.status = status
        super().__init__(f"Invalid response from backend: {backend_url} - Status: {status}")


@dataclass
class BackendResponse:
    status: int
    status_text: str = ""
    headers: Headers = field(default_factory=Headers)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return self.status < 400

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def with_header(self, name: str, value: str) -> "BackendResponse":
        """Copy of this response with *name* set, replacing any case-variant."""
        headers = Headers(self.headers)
        headers.remove(name)
        headers.add(name, value)
        return BackendResponse(self.status, self.status_text, headers, self.body)


def _response_headers(upstream) -> Headers:
    """Backend headers with repeated fields (e.g. Set-Cookie) kept separate."""
    raw = getattr(upstream.raw, "headers", None)
    if raw is not None and hasattr(raw, "getlist"):
        return Headers([(name, value) for name in raw.keys() for value in raw.getlist(name)])
    return Headers(list(upstream.headers.items()))


class Forwarder:
    """Issues exactly one outbound call per request; never retries."""

    def __init__(self, log_adapter: LogAdapter, service_version: str = "unknown",
                 session: requests.Session | None = None, timeout: float | None = None):
        self._log = log_adapter
        self._service_version = service_version
        self._session = session or requests.Session()
        self._timeout = timeout

    def forward(self, request, backend_url: str, body: str) -> tuple[BackendResponse, str]:
        """Send *body* to *backend_url* with the inbound method and headers.

        Returns (response, body_text). Raises BackendError when the backend
        responds with a non-ok status; transport failures are turned into a
        synthesized 503/502 response instead.
        """
        headers = {
            k: v for k, v in header_map(request.headers).items()
            if k.lower() not in _SKIP_REQUEST_HEADERS
        }

        try:
            upstream = self._session.request(
                request.method,
                backend_url,
                headers=headers,
                data=body.encode("utf-8"),
                timeout=self._timeout,
            )
        except Exception as e:
            return self._transport_failure(backend_url, e)

        if upstream is None or not upstream.ok:
            status = upstream.status_code if upstream is not None else None
            error = BackendError(backend_url, status)
            self._log.emit(LogRecord.error(LogType.BACKEND_ERROR, str(error), status=status))
            logger.warning("%s", error)
            raise error

        content = upstream.content
        text = upstream.text
        response = BackendResponse(
            status=upstream.status_code,
            status_text=upstream.reason or "",
            headers=_response_headers(upstream),
            body=content,
        )
        return response, text

    def _transport_failure(self, backend_url: str, error: Exception) -> tuple[BackendResponse, str]:
        message = str(error)
        self._log.emit(LogRecord.error(LogType.FORWARD_ERROR, message))
        logger.error("Forwarding to %s failed: %s", backend_url, message)

        if isinstance(error, (requests.ConnectionError, requests.Timeout)):
            status, status_text = 503, "Service Unavailable"
            text = f"Network error: Unable to reach backend at {backend_url}"
        else:
            status, status_text = 502, "Bad Gateway"
            text = f"Backend error: {message}"

        response = BackendResponse(
            status=status,
            status_text=status_text,
            headers=Headers({"Content-Type": "text/plain; charset=utf-8",
                             VERSION_HEADER: self._service_version}),
            body=text.encode("utf-8"),
        )
        return response, text

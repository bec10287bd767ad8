"""Per-request orchestration: method check, log, forward, log, respond."""

import logging
from dataclasses import dataclass, field

from werkzeug.datastructures import Headers

from postforward.forwarder import VERSION_HEADER, BackendResponse, Forwarder
from postforward.log_adapter import LogAdapter
from postforward.records import LogRecord, LogType

logger = logging.getLogger(__name__)

# The body is decoded by the transport and re-framed by the server
_SKIP_RESPONSE_HEADERS = frozenset({
    "content-encoding", "content-length", "transfer-encoding", "connection",
})


@dataclass(frozen=True)
class InboundRequest:
    """A request whose body has already been read, exactly once, into text."""

    method: str
    url: str
    headers: Headers = field(default_factory=Headers)
    body: str = ""


class RequestHandler:
    def __init__(self, backend_url: str, service_version: str,
                 log_adapter: LogAdapter, forwarder: Forwarder):
        self._backend_url = backend_url
        self._service_version = service_version
        self._log = log_adapter
        self._forwarder = forwarder

    def handle(self, request: InboundRequest) -> BackendResponse:
        if request.method.upper() != "POST":
            return self.method_not_allowed()

        try:
            self._log.emit(LogRecord.request(
                request.method, request.url, self._backend_url,
                request.headers, request.body,
            ))

            response, body_text = self._forwarder.forward(request, self._backend_url, request.body)

            self._log_response(response, body_text)

            return self._respond(response)
        except Exception as e:
            logger.exception("Request to %s failed", request.url)
            self._log.emit(LogRecord.error(LogType.REQUEST_ERROR, str(e)))
            return self._plain(500, "Internal Server Error", "Internal Server Error")

    def method_not_allowed(self) -> BackendResponse:
        return self._plain(405, "Method Not Allowed", "Method not allowed")

    def _log_response(self, response: BackendResponse | None, body_text: str) -> None:
        """Emit RESPONSE, or RESPONSE_ERROR for a missing/non-ok response.

        Failures while building the record become RESPONSE_LOG_ERROR and
        never reach the client.
        """
        try:
            if response is None or not response.ok:
                status = response.status if response is not None else None
                record = LogRecord.error(LogType.RESPONSE_ERROR, "Invalid response object", status=status)
            else:
                record = LogRecord.response(
                    response.status, response.status_text, response.headers, body_text,
                )
            self._log.emit(record)
        except Exception as e:
            logger.warning("Could not log backend response: %s", e)
            self._log.emit(LogRecord.error(LogType.RESPONSE_LOG_ERROR, str(e)))

    def _respond(self, response: BackendResponse) -> BackendResponse:
        headers = Headers([
            (k, v) for k, v in response.headers.items()
            if k.lower() not in _SKIP_RESPONSE_HEADERS
        ])
        copy = BackendResponse(response.status, response.status_text, headers, response.body)
        return copy.with_header(VERSION_HEADER, self._service_version)

    def _plain(self, status: int, status_text: str, text: str) -> BackendResponse:
        return BackendResponse(
            status=status,
            status_text=status_text,
            headers=Headers({"Content-Type": "text/plain; charset=utf-8",
                             VERSION_HEADER: self._service_version}),
            body=text.encode("utf-8"),
        )

"""Log sinks — where serialized records end up."""

import logging
import sys
import threading
from typing import Protocol, runtime_checkable

import requests

logger = logging.getLogger(__name__)


@runtime_checkable
class LogSink(Protocol):
    def log(self, message: str) -> None: ...


class LoggerSink:
    """Named structured-log endpoint backed by a dedicated `logging` logger.

    The endpoint logger does not propagate to the root logger, so records
    reach only the handlers attached to it (stdout by default).
    """

    def __init__(self, endpoint: str = "postforward", handler: logging.Handler | None = None):
        self._logger = logging.getLogger(f"{endpoint}.records")
        self._logger.setLevel(logging.INFO)
        self._logger.propagate = False
        if handler is not None:
            self._logger.addHandler(handler)
        elif not self._logger.handlers:
            stream_handler = logging.StreamHandler(sys.stdout)
            stream_handler.setFormatter(logging.Formatter("%(message)s"))
            self._logger.addHandler(stream_handler)

    def log(self, message: str) -> None:
        self._logger.info(message)


class HttpLogSink:
    """Ships each record as a JSON body to a remote HTTP collector."""

    def __init__(self, url: str, session: requests.Session | None = None, timeout: float = 5.0):
        self._url = url
        self._session = session or requests.Session()
        self._timeout = timeout
        self._failed = 0

    @property
    def failed(self) -> int:
        return self._failed

    def log(self, message: str) -> None:
        try:
            response = self._session.post(
                self._url,
                data=message.encode("utf-8"),
                headers={"Content-Type": "application/json"},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            self._failed += 1
            logger.error("Log collector %s unreachable: %s", self._url, e)
            return
        if not response.ok:
            self._failed += 1
            logger.error("Log collector %s rejected record: %d", self._url, response.status_code)


class ConsoleSink:
    """Writes human-readable records to a stream for local tailing."""

    def __init__(self, stream=None):
        self._stream = stream if stream is not None else sys.stdout
        self._lock = threading.Lock()

    def log(self, message: str) -> None:
        with self._lock:
            self._stream.write(message + "\n")
            self._stream.flush()


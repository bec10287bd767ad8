import json
from unittest.mock import Mock

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from postforward.app import create_app
from postforward.config import Config
from postforward.log_adapter import LogAdapter
from postforward.validator import RecordValidator

BACKEND_URL = "http://backend.test/post"
SERVICE_VERSION = "42"


class MemorySink:
    """Keeps every message a LogAdapter dispatches, for assertions."""

    def __init__(self):
        self.messages: list[str] = []

    def log(self, message: str) -> None:
        self.messages.append(message)


def make_backend_response(status=200, body='{"ok":true}', headers=None, reason="OK"):
    """Build a real requests.Response without touching the network."""
    resp = requests.Response()
    resp.status_code = status
    resp.reason = reason
    resp._content = body.encode("utf-8")
    resp.encoding = "utf-8"
    resp.headers = CaseInsensitiveDict(headers or {"Content-Type": "application/json"})
    resp.url = BACKEND_URL
    return resp


def decode(sink):
    """Decode every JSON message a MemorySink received."""
    return [json.loads(m) for m in sink.messages]


def log_types(sink):
    return [r["log_type"] for r in decode(sink)]


@pytest.fixture
def config():
    return Config(backend_url=BACKEND_URL, service_version=SERVICE_VERSION)


@pytest.fixture
def remote_sink():
    return MemorySink()


@pytest.fixture
def console_sink():
    return MemorySink()


@pytest.fixture
def validator(config):
    return RecordValidator(config.schema_path)


@pytest.fixture
def log_adapter(remote_sink, console_sink, validator):
    return LogAdapter(remote_sink, console_sink, validator)


@pytest.fixture
def session():
    mock_session = Mock(spec=requests.Session)
    mock_session.request.return_value = make_backend_response()
    return mock_session


@pytest.fixture
def app(config, remote_sink, console_sink, session):
    """Create a Flask test app with in-memory sinks and a mocked backend."""
    application = create_app(config, remote_sink=remote_sink,
                              console_sink=console_sink, session=session)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    """Create a Flask test client."""
    return app.test_client()

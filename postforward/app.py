import logging

import requests
from flask import Flask, Response, request
from werkzeug.datastructures import Headers

from postforward.config import Config
from postforward.forwarder import Forwarder
from postforward.handler import InboundRequest, RequestHandler
from postforward.log_adapter import LogAdapter
from postforward.sinks import ConsoleSink, HttpLogSink, LoggerSink
from postforward.validator import RecordValidator

logger = logging.getLogger(__name__)

ROUTED_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def _to_flask(response):
    status = response.status
    if response.status_text:
        status = f"{response.status} {response.status_text}"
    return Response(response.body, status=status, headers=response.headers)


def create_app(config=None, remote_sink=None, console_sink=None, session=None):
    """Flask application factory."""
    app = Flask(__name__)

    if config is None:
        config = Config()

    if remote_sink is None:
        if config.log_sink_url:
            remote_sink = HttpLogSink(config.log_sink_url)
        else:
            remote_sink = LoggerSink(config.log_endpoint)
    if console_sink is None:
        console_sink = ConsoleSink()
    if session is None:
        session = requests.Session()

    validator = RecordValidator(config.schema_path)
    log_adapter = LogAdapter(remote_sink, console_sink, validator)
    forwarder = Forwarder(
        log_adapter,
        service_version=config.service_version,
        session=session,
        timeout=config.backend_timeout,
    )
    handler = RequestHandler(config.backend_url, config.service_version, log_adapter, forwarder)

    # Store components on app for access in tests
    app.config["components"] = {
        "config": config,
        "log_adapter": log_adapter,
        "forwarder": forwarder,
        "handler": handler,
    }

    logger.info("Forwarding POST requests to %s (version %s)",
                config.backend_url, config.service_version)

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return _to_flask(handler.method_not_allowed())

    @app.route("/", defaults={"path": ""}, methods=ROUTED_METHODS)
    @app.route("/<path:path>", methods=ROUTED_METHODS)
    def forward(path):
        if request.method != "POST":
            return _to_flask(handler.method_not_allowed())

        inbound = InboundRequest(
            method=request.method,
            url=request.url,
            headers=Headers(list(request.headers.items())),
            body=request.get_data(as_text=True),
        )
        return _to_flask(handler.handle(inbound))

    return app

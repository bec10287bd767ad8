"""Configuration module — frozen dataclass loaded from YAML, env vars and CLI args."""

import logging
import os
import sys
from argparse import ArgumentParser
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_SCHEMA_PATH = str(Path(__file__).parent / "schemas" / "log_record.json")

# Maps env var names to Config fields
ENV_VARS = {
    "BACKEND_URL": "backend_url",
    "SERVICE_VERSION": "service_version",
    "HOST": "host",
    "PORT": "port",
    "LOG_ENDPOINT": "log_endpoint",
    "LOG_SINK_URL": "log_sink_url",
    "BACKEND_TIMEOUT": "backend_timeout",
    "LOG_LEVEL": "log_level",
    "SCHEMA_PATH": "schema_path",
}


@dataclass(frozen=True)
class Config:
    backend_url: str = "https://httpbin.org/post"
    service_version: str = "unknown"
    host: str = "0.0.0.0"
    port: int = 8080
    log_endpoint: str = "postforward"
    log_sink_url: Optional[str] = None
    backend_timeout: Optional[float] = None
    log_level: str = "INFO"
    schema_path: str = DEFAULT_SCHEMA_PATH

    def __post_init__(self):
        if not self.service_version:
            object.__setattr__(self, "service_version", "unknown")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.log_level}")
        object.__setattr__(self, "log_level", self.log_level.upper())


def _coerce(key: str, value):
    """Convert a raw YAML/env/CLI value to the type of the named field."""
    if value is None or value == "":
        if key in ("log_sink_url", "backend_timeout"):
            return None
        return value
    if key == "port":
        return int(value)
    if key == "backend_timeout":
        return float(value)
    return str(value)


def load_yaml(config_path: str) -> dict:
    """Read overrides from a YAML file. Missing or invalid files give {}."""
    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        return {}
    except yaml.YAMLError:
        logger.warning("Invalid YAML in %s, ignoring it", config_path)
        return {}

    if not isinstance(data, dict):
        return {}
    known = {f.name for f in fields(Config)}
    return {k: v for k, v in data.items() if k in known}


def build_parser() -> ArgumentParser:
    """Build the CLI argument parser."""
    parser = ArgumentParser(
        prog="postforward",
        description="Forward POST requests to a fixed backend and log them.",
    )
    parser.add_argument("--config", help="Path to a YAML config file")
    parser.add_argument("--backend-url", help="Backend URL requests are forwarded to")
    parser.add_argument("--service-version", help="Value of the x-serviceVersion header")
    parser.add_argument("--host", help="Listen address")
    parser.add_argument("--port", type=int, help="Listen port")
    parser.add_argument("--log-endpoint", help="Name of the structured-log endpoint")
    parser.add_argument("--log-sink-url", help="HTTP collector URL for structured logs")
    parser.add_argument("--backend-timeout", type=float, help="Outbound timeout in seconds")
    parser.add_argument("--log-level", choices=LOG_LEVELS, help="Service log level")
    parser.add_argument("--schema-path", help="JSON schema for log records")
    return parser


def load_config(argv: list[str] | None = None, environ=None) -> Config:
    """Build Config from defaults <- YAML file <- env vars <- CLI args (highest priority)."""
    if argv is None:
        argv = sys.argv[1:]
    if environ is None:
        environ = os.environ

    args = build_parser().parse_args(argv)

    kwargs: dict = {}

    config_path = args.config or environ.get("CONFIG_PATH")
    if config_path:
        for key, value in load_yaml(config_path).items():
            kwargs[key] = _coerce(key, value)

    for env_name, key in ENV_VARS.items():
        if env_name in environ:
            kwargs[key] = _coerce(key, environ[env_name])

    for key in ENV_VARS.values():
        value = getattr(args, key)
        if value is not None:
            kwargs[key] = _coerce(key, value)

    return Config(**kwargs)

"""postforward — forward POST requests to a fixed backend and log both sides."""

from postforward.app import create_app
from postforward.config import Config, load_config

__all__ = ["Config", "create_app", "load_config"]

"""Entry point for the postforward service."""

import logging
import signal
import sys
import threading

from werkzeug.serving import make_server

from postforward.app import create_app
from postforward.config import load_config


def main():
    config = load_config()

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
        stream=sys.stderr,
    )
    logger = logging.getLogger(__name__)

    app = create_app(config)
    server = make_server(config.host, config.port, app, threaded=True)
    shutdown_event = threading.Event()

    def signal_handler(signum, frame):
        logger.info("Received signal %d, shutting down...", signum)
        shutdown_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    t = threading.Thread(target=server.serve_forever, daemon=True)
    t.start()
    logger.info("postforward listening on %s:%d — backend=%s",
                config.host, server.server_port, config.backend_url)

    shutdown_event.wait()
    server.shutdown()
    t.join(timeout=5)
    logger.info("postforward stopped")


if __name__ == "__main__":
    main()

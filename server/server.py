"""Main contacts harvester server module."""

import json
import logging
import signal
import sys

from flask import Flask, make_response
from flask_restful import Api

from server import config
from server.core.automation_server import AutomationServer
from server.resources.contacts_resource import ContactsResource

logger = logging.getLogger(__name__)


def output_json(data, code, headers=None):
    """Makes a Flask response with a JSON body that keeps non-ASCII contact names readable."""
    resp = make_response(json.dumps(data, ensure_ascii=False), code)
    resp.headers.extend(headers or {})
    resp.headers["Content-Type"] = "application/json; charset=utf-8"
    return resp


def create_app(server_instance=None):
    """Build the Flask app.

    Args:
        server_instance: AutomationServer to serve requests with (defaults to the singleton)
    """
    server = server_instance or AutomationServer.get_instance()

    app = Flask(__name__)
    api = Api(app)
    api.representations = {"application/json": output_json}

    api.add_resource(ContactsResource, "/contacts", resource_class_kwargs={"server_instance": server})

    app.automation_server = server
    return app


def main():
    from automator import load_environment
    from server.logging_config import setup_logger

    load_environment()
    setup_logger()
    config.ensure_directories()

    server = AutomationServer.get_instance()
    app = create_app(server)

    def shutdown_handler(signum, frame):
        logger.info(f"Received signal {signum}, closing Appium session")
        AutomationServer.reset_instance()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown_handler)
    signal.signal(signal.SIGTERM, shutdown_handler)

    logger.info(f"Starting contacts harvester server on {config.HOST}:{config.PORT}")
    # Harvests hold the device for up to a couple of minutes, keep one request thread per call
    app.run(host=config.HOST, port=config.PORT, threaded=True)


if __name__ == "__main__":
    main()

import os

import functions_framework
from flask import Flask, request

from src.logger import setup_logger # Import the custom logger
log = setup_logger(__name__) # Setup logger for this module

from src.config_handler import LENIENT, load_config, mode_from_env
from src.errors import ConfigError
from src.proxy_handler import handle_request

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

# Configuration from environment variables, read once per instance
try:
    CONFIG = load_config()
    CONFIG_ERROR = None
except ConfigError as e:
    log.warning(f"Proxy is not configured, every request will fail: {e.message}")
    CONFIG = None
    CONFIG_ERROR = e

# Mode for the error responses of an unconfigured instance
STRICT = mode_from_env() != LENIENT


@functions_framework.http
def gas_proxy_entrypoint(request):
    """
    HTTP Cloud Function entry point.

    Forwards the request to the configured Apps Script web app and returns a
    (body, status, headers) tuple. See src/proxy_handler.py for the rules.
    """
    return handle_request(request, CONFIG, strict=STRICT, config_error=CONFIG_ERROR)


def create_app(config):
    """Wraps the handler in a Flask app for local development."""
    app = Flask(__name__)

    @app.route("/", defaults={"path": ""}, methods=ALL_METHODS)
    @app.route("/<path:path>", methods=ALL_METHODS)
    def proxy(path):
        return handle_request(request, config)

    return app


# Example of how to run locally (for testing purposes)
# Deployed functions use gas_proxy_entrypoint through main.py instead
if __name__ == "__main__":
    # Fail fast rather than serving 500s
    config = load_config()
    port = int(os.getenv("PORT", "8080"))
    log.info(f"Running locally on http://127.0.0.1:{port} ...")
    create_app(config).run(host="127.0.0.1", port=port, debug=False)

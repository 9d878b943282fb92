"""Greeter application entry point.

This module exposes the Flask application that serves the greeting routes.
Every request goes through one catch-all view into the route table in
:mod:`greeter.routing`, so route order and the 404 fall-through live in a
single place. Running it starts the server on port 2005.
"""

from __future__ import annotations

import logging
from urllib.parse import quote, urlsplit

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from greeter.config import ServerConfig
from greeter.errors import GreeterError, RouteNotFound
from greeter.routing import dispatch
from greeter.server import GreeterServer

METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def raw_path(environ: dict) -> str:
    """Return the request path as the client sent it, still percent-encoded.

    ``PATH_INFO`` is already decoded, which would turn an encoded ``/`` into a
    separator. werkzeug's server and test client keep the request target in
    ``RAW_URI`` and ``REQUEST_URI``.
    """
    raw = environ.get("RAW_URI") or environ.get("REQUEST_URI")
    if not raw:
        return quote(environ.get("PATH_INFO") or "/")
    raw = raw.encode("latin-1", "replace").decode("utf-8", "replace")
    if not raw.startswith("/"):
        return urlsplit(raw).path or "/"
    return raw.partition("?")[0]


def create_app(config: ServerConfig | None = None) -> Flask:
    """Create and configure the greeter Flask application."""

    app = Flask(__name__)
    app.config["GREETER"] = config or ServerConfig()
    # Paths reach the dispatcher exactly as sent, never redirected.
    app.url_map.merge_slashes = False

    def handle(path: str = ""):
        status, payload = dispatch(
            request.method,
            raw_path(request.environ),
            request.args.to_dict(),
            request.get_data(cache=False),
        )
        return jsonify(payload), status

    app.add_url_rule(
        "/", endpoint="dispatch", view_func=handle, methods=METHODS, strict_slashes=False
    )
    app.add_url_rule(
        "/<path:path>",
        endpoint="dispatch",
        view_func=handle,
        methods=METHODS,
        strict_slashes=False,
    )

    @app.errorhandler(GreeterError)
    def handle_greeter_error(error: GreeterError):
        app.logger.info(
            "%s %s -> %d %s", request.method, request.path, error.status, error.message
        )
        return jsonify(error.payload()), error.status

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        return handle_greeter_error(RouteNotFound())

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        app.logger.exception("Unhandled error serving %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error"}), 500

    return app


def main() -> None:
    """Serve the greeter until the process is terminated."""
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    config = ServerConfig()
    app = create_app(config)
    server = GreeterServer(app, config)
    server.bind()
    app.logger.info("Server is running on http://localhost:%d", server.port)
    server.serve_forever()
    app.logger.info("Server stopped")


if __name__ == "__main__":  # pragma: no cover
    main()

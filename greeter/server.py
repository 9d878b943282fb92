"""Long-lived HTTP listener for the greeter application."""

from __future__ import annotations

import logging
import threading

from flask import Flask
from werkzeug.serving import BaseWSGIServer, make_server

from greeter.config import ServerConfig

logger = logging.getLogger(__name__)


class GreeterServer:
    """Owns the listening socket and the serve loop.

    Construct once at startup. ``serve_forever`` blocks the calling thread,
    which is what the process entry point wants; ``start``/``stop`` run the
    loop on a background thread so tests can embed a live server::

        with GreeterServer(app, ServerConfig(host="127.0.0.1", port=0)) as server:
            httpx.get(server.url)
    """

    def __init__(self, app: Flask, config: ServerConfig | None = None) -> None:
        self.app = app
        self.config = config or app.config["GREETER"]
        self._server: BaseWSGIServer | None = None
        self._thread: threading.Thread | None = None

    def bind(self) -> BaseWSGIServer:
        """Open the listening socket if it is not open yet."""
        if self._server is None:
            self._server = make_server(
                self.config.host, self.config.port, self.app, threaded=False
            )
            logger.debug("Bound %s:%d", self.config.host, self._server.server_port)
        return self._server

    @property
    def running(self) -> bool:
        return self._server is not None

    @property
    def port(self) -> int:
        if self._server is None:
            raise RuntimeError("server is not bound")
        return self._server.server_port

    @property
    def url(self) -> str:
        host = self.config.host
        if host in ("", "0.0.0.0"):
            host = "localhost"
        return f"http://{host}:{self.port}"

    def serve_forever(self) -> None:
        """Serve on the calling thread until interrupted."""
        try:
            self.bind().serve_forever()
        finally:
            self.stop()

    def start(self) -> GreeterServer:
        """Serve on a background thread and return immediately."""
        if self._thread is not None:
            raise RuntimeError("server already started")
        server = self.bind()
        self._thread = threading.Thread(
            target=server.serve_forever, name="greeter-server", daemon=True
        )
        self._thread.start()
        return self

    def stop(self) -> None:
        """Stop serving and release the socket."""
        if self._server is None:
            return
        if self._thread is not None:
            self._server.shutdown()
            self._thread.join()
            self._thread = None
        self._server.server_close()
        self._server = None

    def __enter__(self) -> GreeterServer:
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop()

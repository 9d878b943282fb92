"""Pytest configuration and fixtures."""

import httpx
import pytest

from greeter.config import ServerConfig
from greeter.main import create_app
from greeter.server import GreeterServer


@pytest.fixture
def app():
    """Greeter application bound to an ephemeral loopback port."""
    app = create_app(ServerConfig(host="127.0.0.1", port=0))
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def live_server(app):
    """A real listener serving ``app`` on a background thread."""
    with GreeterServer(app) as server:
        yield server


@pytest.fixture
def http(live_server):
    with httpx.Client(base_url=live_server.url, timeout=5.0) as client:
        yield client

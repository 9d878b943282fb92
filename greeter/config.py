"""Server configuration."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 2005


@dataclass(frozen=True)
class ServerConfig:
    """Where the greeter listens.

    The defaults are the fixed production values. Tests pass ``port=0`` to
    bind an ephemeral port::

        config = ServerConfig(host="127.0.0.1", port=0)
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

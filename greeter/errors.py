"""Greeter exception hierarchy.

Route handlers raise these; the Flask error handlers in :mod:`greeter.main`
turn them into JSON error responses.
"""

from __future__ import annotations


class GreeterError(Exception):
    """Base for errors that map directly to an HTTP error response."""

    status = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def payload(self) -> dict[str, str]:
        return {"error": self.message}


class MissingParameter(GreeterError):
    """400 - a required path, query or body field is absent."""

    status = 400


class MalformedBody(GreeterError):
    """400 - the request body is not valid JSON."""

    status = 400
    message = "Invalid JSON in request body"


class RouteNotFound(GreeterError):
    """404 - no route matched the method and path."""

    status = 404
    message = "Route not found"

"""Request dispatcher for the greeter routes.

Handlers register on a :class:`Router` with ``@router.get`` and
``@router.post``. Registration order is match order: ``dispatch`` walks the
table top to bottom and the first route whose method and path match handles
the request. Nothing matching means :class:`RouteNotFound`.

Handlers return the JSON payload of a ``200`` response or raise a
:class:`~greeter.errors.GreeterError`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping
from urllib.parse import unquote

from greeter.errors import MalformedBody, MissingParameter, RouteNotFound

logger = logging.getLogger(__name__)

Payload = dict[str, str]


@dataclass(frozen=True)
class IncomingRequest:
    """The parts of a request the handlers look at.

    ``path`` is the path exactly as the client sent it, still
    percent-encoded, so an encoded ``/`` never splits a segment.
    """

    method: str
    path: str
    query: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    def json(self) -> Any:
        """Parse the buffered body, raising :class:`MalformedBody` on failure."""
        try:
            data = json.loads(self.body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise MalformedBody() from exc
        if data is None:
            raise MalformedBody()
        return data


Handler = Callable[[IncomingRequest], Payload]


@dataclass(frozen=True)
class Route:
    """One route table entry; ``prefix`` routes match every path under ``path``."""

    method: str
    path: str
    handler: Handler
    name: str
    prefix: bool = False

    def matches(self, method: str, path: str) -> bool:
        if method != self.method:
            return False
        if self.prefix:
            return path.startswith(self.path)
        return path == self.path


class Router:
    """Ordered route table filled by decorators."""

    def __init__(self) -> None:
        self.routes: list[Route] = []

    def route(self, method: str, path: str, prefix: bool = False) -> Callable[[Handler], Handler]:
        def register(handler: Handler) -> Handler:
            self.routes.append(Route(method, path, handler, handler.__name__, prefix))
            return handler

        return register

    def get(self, path: str, prefix: bool = False) -> Callable[[Handler], Handler]:
        return self.route("GET", path, prefix)

    def post(self, path: str, prefix: bool = False) -> Callable[[Handler], Handler]:
        return self.route("POST", path, prefix)

    def resolve(self, method: str, path: str) -> Route:
        """Return the first route matching ``method`` and ``path``."""
        for route in self.routes:
            if route.matches(method, path):
                return route
        raise RouteNotFound()


router = Router()


def _as_text(value: Any) -> str:
    """Render a JSON value the way it reads inside a sentence."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def introduce(name: Any, age: Any) -> str:
    return f"Hello my name is {_as_text(name)} and im {_as_text(age)} years old."


@router.get("/")
def hello_world(request: IncomingRequest) -> Payload:
    return {"msg": "Hello World!!!"}


@router.get("/greet/", prefix=True)
def greet_by_path(request: IncomingRequest) -> Payload:
    parts = request.path.split("/")
    if len(parts) != 3 or not parts[2]:
        raise MissingParameter("Name parameter missing")
    return {"msg": f"Hello {unquote(parts[2])}!"}


@router.get("/greeting")
def greet_by_query(request: IncomingRequest) -> Payload:
    name = request.query.get("name")
    age = request.query.get("age")
    if not (name and age):
        raise MissingParameter("Name or age query parameter missing")
    return {"msg": introduce(name, age)}


@router.post("/greet")
def greet_by_body(request: IncomingRequest) -> Payload:
    data = request.json()
    if not isinstance(data, dict):
        data = {}
    name = data.get("name")
    age = data.get("age")
    if not (name and age):
        raise MissingParameter("Name or age missing in request body")
    return {"msg": introduce(name, age)}


ROUTES = router.routes


def dispatch(
    method: str,
    path: str,
    query: Mapping[str, str] | None = None,
    body: bytes = b"",
    table: Router | None = None,
) -> tuple[int, Payload]:
    """Route one request and return ``(status, payload)``.

    ``path`` is the raw, still percent-encoded request path. Client errors
    propagate as :class:`~greeter.errors.GreeterError` subclasses so the
    caller decides how to render them.
    """
    request = IncomingRequest(method, path, query or {}, body)
    route = (table or router).resolve(method, path)
    logger.debug("%s %s matched route %s", method, path, route.name)
    return 200, route.handler(request)

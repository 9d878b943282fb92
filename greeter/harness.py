"""Smoke-test the greeter routes against a live server process.

Usage:
    greeter-smoke                          # run every check
    greeter-smoke testGetRoot test404      # run only the named checks
    greeter-smoke --startup-timeout 30     # allow a slow server start

The server is started as a child process, polled until it accepts
connections, exercised over HTTP and terminated again, whatever the
outcome.
"""

from __future__ import annotations

import argparse
import socket
import subprocess
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import httpx

from greeter.config import DEFAULT_PORT

HOST = "127.0.0.1"
BASE_URL = f"http://{HOST}:{DEFAULT_PORT}"
SERVER_COMMAND = [sys.executable, "-m", "greeter.main"]
PROJECT_ROOT = Path(__file__).resolve().parent.parent


class HarnessError(Exception):
    """The server under test could not be started."""


class CheckFailed(AssertionError):
    """A response did not match what a check expects."""


@dataclass(frozen=True)
class Check:
    """A named smoke check.

    Attributes:
        name: Identifier used to select the check on the command line
        label: Human readable description printed with the result
        run: Callable issuing the request; raises CheckFailed on mismatch
    """

    name: str
    label: str
    run: Callable[[httpx.Client], None]


def expect(response: httpx.Response, status: int, field: str, value: str) -> None:
    if response.status_code != status:
        raise CheckFailed(f"expected status {status}, got {response.status_code}")
    body = response.json()
    if not isinstance(body, dict):
        raise CheckFailed(f"expected a JSON object, got {body!r}")
    actual = body.get(field)
    if actual != value:
        raise CheckFailed(f"expected {field}={value!r}, got {actual!r}")


def check_get_root(client: httpx.Client) -> None:
    expect(client.get("/"), 200, "msg", "Hello World!!!")


def check_path_param_greeting(client: httpx.Client) -> None:
    expect(client.get("/greet/John"), 200, "msg", "Hello John!")


def check_query_param_greeting(client: httpx.Client) -> None:
    response = client.get("/greeting", params={"name": "Alice", "age": 25})
    expect(response, 200, "msg", "Hello my name is Alice and im 25 years old.")


def check_post_greet(client: httpx.Client) -> None:
    response = client.post("/greet", json={"name": "Bob", "age": 30})
    expect(response, 200, "msg", "Hello my name is Bob and im 30 years old.")


def check_not_found(client: httpx.Client) -> None:
    expect(client.get("/unknown"), 404, "error", "Route not found")


CHECKS = [
    Check("testGetRoot", 'GET "/"', check_get_root),
    Check("testPathParamGreeting", 'GET "/greet/:name"', check_path_param_greeting),
    Check(
        "testQueryParamGreeting",
        'GET "/greeting?name=Alice&age=25"',
        check_query_param_greeting,
    ),
    Check("testPostGreet", 'POST "/greet"', check_post_greet),
    Check("test404", "404 for unknown route", check_not_found),
]


def select_checks(names: list[str]) -> list[Check]:
    """Return the checks to run, in their declared order.

    An empty ``names`` selects every check.

    Raises:
        ValueError: If a name does not belong to any check
    """
    known = {check.name for check in CHECKS}
    unknown = [name for name in names if name not in known]
    if unknown:
        raise ValueError(f"unknown check(s): {', '.join(unknown)}")
    if not names:
        return list(CHECKS)
    return [check for check in CHECKS if check.name in names]


def run_checks(client: httpx.Client, checks: list[Check]) -> int:
    """Run ``checks`` in order, print one line each and return the failure count."""
    failures = 0
    for check in checks:
        try:
            check.run(client)
        except (AssertionError, httpx.HTTPError, ValueError) as exc:
            failures += 1
            reason = str(exc) or type(exc).__name__
            print(f"❌ Test {check.label} failed: {reason}")
        else:
            print(f"✅ Test {check.label} passed.")
    return failures


def launch_server(command: Optional[list[str]] = None) -> subprocess.Popen:
    print("Starting the server..")
    return subprocess.Popen(
        command or SERVER_COMMAND,
        cwd=PROJECT_ROOT,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
    )


def wait_until_ready(
    process: subprocess.Popen,
    host: str = HOST,
    port: int = DEFAULT_PORT,
    timeout: float = 10.0,
    interval: float = 0.1,
) -> None:
    """Block until ``host:port`` accepts a TCP connection.

    Raises:
        HarnessError: If the process exits first or ``timeout`` elapses
    """
    deadline = time.monotonic() + timeout
    while True:
        returncode = process.poll()
        if returncode is not None:
            raise HarnessError(
                f"server exited with code {returncode} before accepting connections"
            )
        try:
            with socket.create_connection((host, port), timeout=interval):
                return
        except OSError:
            if time.monotonic() >= deadline:
                raise HarnessError(f"server not ready on {host}:{port} after {timeout}s")
            time.sleep(interval)


def stop_server(process: subprocess.Popen, grace: float = 5.0) -> None:
    print("Stopping the server ..")
    if process.poll() is not None:
        return
    process.terminate()
    try:
        process.wait(timeout=grace)
    except subprocess.TimeoutExpired:
        process.kill()
        process.wait()


def run(
    checks: list[Check],
    command: Optional[list[str]] = None,
    base_url: str = BASE_URL,
    startup_timeout: float = 10.0,
) -> int:
    """Start the server, run ``checks`` against it and stop it again.

    Returns:
        Number of failed checks
    """
    url = httpx.URL(base_url)
    print("Running tests..\n")
    process = launch_server(command)
    try:
        wait_until_ready(process, url.host, url.port or 80, timeout=startup_timeout)
        with httpx.Client(base_url=base_url, timeout=5.0) as client:
            return run_checks(client, checks)
    finally:
        stop_server(process)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Smoke-test the greeter server")
    parser.add_argument(
        "checks",
        nargs="*",
        metavar="CHECK",
        help=f"Checks to run (default: all of {', '.join(c.name for c in CHECKS)})",
    )
    parser.add_argument(
        "--startup-timeout",
        type=float,
        default=10.0,
        help="Seconds to wait for the server to accept connections (default: 10)",
    )
    args = parser.parse_args(argv)

    try:
        checks = select_checks(args.checks)
    except ValueError as exc:
        parser.error(str(exc))

    try:
        failures = run(checks, startup_timeout=args.startup_timeout)
    except HarnessError as exc:
        print(f"❌ Test failed: {exc}")
        return 1
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())

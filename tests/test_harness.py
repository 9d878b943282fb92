"""Tests for harness.py - smoke check selection, reporting and process control."""

import socket
import subprocess
import sys

import httpx
import pytest

from greeter import harness
from greeter.harness import (
    CHECKS,
    PROJECT_ROOT,
    Check,
    CheckFailed,
    HarnessError,
    expect,
    run_checks,
    select_checks,
    stop_server,
    wait_until_ready,
)


def _free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _port_in_use(port):
    with socket.socket() as sock:
        try:
            sock.bind(("0.0.0.0", port))
        except OSError:
            return True
    return False


class TestSelectChecks:
    def test_empty_selects_all(self):
        assert [check.name for check in select_checks([])] == [
            "testGetRoot",
            "testPathParamGreeting",
            "testQueryParamGreeting",
            "testPostGreet",
            "test404",
        ]

    def test_keeps_declared_order(self):
        checks = select_checks(["test404", "testGetRoot"])

        assert [check.name for check in checks] == ["testGetRoot", "test404"]

    def test_unknown_name_rejected(self):
        with pytest.raises(ValueError, match="testNope"):
            select_checks(["testGetRoot", "testNope"])

    def test_main_reports_unknown_name_as_usage_error(self):
        with pytest.raises(SystemExit) as excinfo:
            harness.main(["testNope"])

        assert excinfo.value.code == 2


class TestRunChecks:
    def test_all_checks_pass_against_live_server(self, http, capsys):
        failures = run_checks(http, CHECKS)

        out = capsys.readouterr().out
        assert failures == 0
        assert out.count("✅") == len(CHECKS)
        assert '✅ Test GET "/" passed.' in out

    def test_failure_is_reported_and_counted(self, http, capsys):
        def wrong(client):
            harness.expect(client.get("/"), 200, "msg", "Goodbye")

        failures = run_checks(http, [Check("testWrong", "wrong greeting", wrong)])

        out = capsys.readouterr().out
        assert failures == 1
        assert "❌ Test wrong greeting failed: expected msg='Goodbye', got 'Hello World!!!'" in out

    def test_non_object_body_counts_as_failure(self, http, capsys):
        def listing(client):
            expect(httpx.Response(200, json=["Hello"]), 200, "msg", "Hello")

        checks = [Check("testListing", "listing", listing), *select_checks(["testGetRoot"])]

        failures = run_checks(http, checks)

        out = capsys.readouterr().out
        assert failures == 1
        assert "❌ Test listing failed: expected a JSON object, got ['Hello']" in out
        assert '✅ Test GET "/" passed.' in out

    def test_connection_error_counts_as_failure(self, capsys):
        with httpx.Client(base_url=f"http://127.0.0.1:{_free_port()}", timeout=1.0) as client:
            failures = run_checks(client, select_checks(["testGetRoot"]))

        assert failures == 1
        assert "❌" in capsys.readouterr().out


class TestProcessControl:
    def test_wait_until_ready_detects_early_exit(self):
        process = subprocess.Popen([sys.executable, "-c", "raise SystemExit(3)"])
        process.wait()

        with pytest.raises(HarnessError, match="code 3"):
            wait_until_ready(process, port=_free_port(), timeout=5.0)

    def test_wait_until_ready_times_out(self):
        process = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])
        try:
            with pytest.raises(HarnessError, match="not ready"):
                wait_until_ready(process, port=_free_port(), timeout=0.3)
        finally:
            stop_server(process)

        assert process.returncode is not None

    def test_wait_until_ready_returns_once_listening(self, live_server):
        process = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])
        try:
            wait_until_ready(process, port=live_server.port, timeout=5.0)
        finally:
            stop_server(process)

    def test_stop_server_ignores_finished_process(self):
        process = subprocess.Popen([sys.executable, "-c", "pass"])
        process.wait()

        stop_server(process)

        assert process.returncode == 0


@pytest.mark.skipif(_port_in_use(2005), reason="port 2005 is already in use")
def test_main_runs_every_check_against_spawned_server(capsys):
    assert harness.main(["--startup-timeout", "30"]) == 0

    out = capsys.readouterr().out
    assert out.count("✅") == len(CHECKS)
    assert "Stopping the server .." in out


class TestExpect:
    def test_status_mismatch_raises(self):
        with pytest.raises(CheckFailed, match="expected status 200, got 418"):
            expect(httpx.Response(418, json={"msg": "Hello"}), 200, "msg", "Hello")

    def test_field_mismatch_raises(self):
        with pytest.raises(CheckFailed, match="expected msg='Hello'"):
            expect(httpx.Response(200, json={"msg": "Goodbye"}), 200, "msg", "Hello")

    def test_matching_response_passes(self):
        expect(httpx.Response(200, json={"msg": "Hello"}), 200, "msg", "Hello")

    def test_mismatch_still_fails_with_optimizations(self):
        script = (
            "import httpx\n"
            "from greeter.harness import CheckFailed, expect\n"
            "try:\n"
            "    expect(httpx.Response(418, json={'msg': 'Goodbye'}), 200, 'msg', 'Hello')\n"
            "except CheckFailed:\n"
            "    raise SystemExit(0)\n"
            "raise SystemExit(1)\n"
        )

        result = subprocess.run([sys.executable, "-O", "-c", script], cwd=PROJECT_ROOT)

        assert result.returncode == 0

"""
Tests for the PowerShell runner (local execution path and WinRM fallback order).
"""

import subprocess
from unittest.mock import MagicMock

from autospn.infrastructure.psremote import client as client_module
from autospn.infrastructure.psremote.client import ConnectionConfig, PSRemoteClient, PSRemoteResult


class TestLocalhostDetection:
    """Localhost aliases bypass WinRM."""

    def test_aliases(self):
        for name in ("localhost", "127.0.0.1", ".", "(local)", " LOCALHOST "):
            assert PSRemoteClient(ConnectionConfig(hostname=name)).is_localhost

    def test_remote_host(self, monkeypatch):
        monkeypatch.setattr(client_module.socket, "gethostname", lambda: "workstation.abcorp.local")
        assert not PSRemoteClient(ConnectionConfig(hostname="dc01")).is_localhost

    def test_local_machine_name(self, monkeypatch):
        monkeypatch.setattr(client_module.socket, "gethostname", lambda: "workstation.abcorp.local")
        assert PSRemoteClient(ConnectionConfig(hostname="WORKSTATION")).is_localhost


class TestLocalExecution:
    """powershell.exe invocation."""

    def test_script_passed_on_stdin(self, monkeypatch):
        run = MagicMock(return_value=subprocess.CompletedProcess(args=[], returncode=0, stdout="ok\n", stderr=""))
        monkeypatch.setattr(client_module.subprocess, "run", run)

        result = PSRemoteClient(ConnectionConfig()).run_ps("setspn -L x")

        assert result.success
        assert result.stdout == "ok\n"
        assert result.transport_used == "local"
        assert run.call_args.kwargs["input"] == "setspn -L x"
        assert run.call_args.args[0][0] == "powershell.exe"

    def test_missing_powershell(self, monkeypatch):
        monkeypatch.setattr(client_module.subprocess, "run", MagicMock(side_effect=FileNotFoundError()))
        result = PSRemoteClient(ConnectionConfig()).run_ps("setspn -L x")
        assert not result.success
        assert "powershell.exe not found" in result.error

    def test_timeout(self, monkeypatch):
        monkeypatch.setattr(client_module.subprocess, "run",
                            MagicMock(side_effect=subprocess.TimeoutExpired(cmd="powershell.exe", timeout=1)))
        result = PSRemoteClient(ConnectionConfig(operation_timeout_sec=1)).run_ps("Start-Sleep 5")
        assert not result.success
        assert "timed out" in result.error


class TestRemoteExecution:
    """WinRM path with the session mocked."""

    def test_connect_failure_reported(self, monkeypatch):
        monkeypatch.setattr(client_module.socket, "gethostname", lambda: "workstation")
        client = PSRemoteClient(ConnectionConfig(hostname="dc01", username="u", password="p"))
        monkeypatch.setattr(client, "_try_connect", lambda transport, auth, verify_ssl: False)

        result = client.run_ps("setspn -L x")

        assert not result.success
        assert "dc01" in result.error

    def test_first_working_combination_prefers_https(self, monkeypatch):
        monkeypatch.setattr(client_module.socket, "gethostname", lambda: "workstation")
        client = PSRemoteClient(ConnectionConfig(hostname="dc02", username="u", password="p"))
        tried = []

        def fake_try(transport, auth, verify_ssl):
            tried.append((transport.value, auth.value, verify_ssl))
            return transport.value == "http"

        monkeypatch.setattr(client, "_try_connect", fake_try)
        PSRemoteClient._connection_cache.clear()

        assert client.connect()
        assert tried[0] == ("https", "negotiate", True)
        assert tried[-1] == ("http", "negotiate", False)

    def test_output_combines_streams(self):
        result = PSRemoteResult(success=False, stdout="a", stderr="b", error="c")
        assert result.output == "a\nb\nc"

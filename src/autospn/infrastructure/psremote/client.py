"""
PSRemote Client - pywinrm wrapper.

Runs PowerShell on the host that talks to the directory. Localhost runs
through a local powershell.exe; remote hosts go through WinRM, trying
transport and authentication combinations until one works.

Transport Priority:
1. HTTPS (5986) with certificate validation
2. HTTPS (5986) without certificate validation
3. HTTP (5985)

Auth Priority:
1. Negotiate (auto-selects Kerberos or NTLM)
2. Kerberos
3. NTLM
"""

from __future__ import annotations

import logging
import socket
import subprocess
from dataclasses import dataclass
from enum import Enum

import winrm  # pywinrm
from winrm.exceptions import WinRMError, WinRMTransportError
from requests.exceptions import RequestException

logger = logging.getLogger(__name__)

LOCALHOST_NAMES = {"localhost", "127.0.0.1", "::1", ".", "(local)"}


class Transport(Enum):
    """WinRM transport protocols."""

    HTTPS = "https"
    HTTP = "http"


class AuthMethod(Enum):
    """WinRM authentication methods."""

    NEGOTIATE = "negotiate"
    KERBEROS = "kerberos"
    NTLM = "ntlm"


@dataclass
class ConnectionConfig:
    """Configuration for PSRemote connection."""

    hostname: str = "localhost"
    username: str | None = None
    password: str | None = None
    port_http: int = 5985
    port_https: int = 5986
    timeout_seconds: int = 30
    operation_timeout_sec: int = 120
    max_retries_per_combo: int = 2


@dataclass
class PSRemoteResult:
    """Result from PSRemote operation."""

    success: bool
    stdout: str = ""
    stderr: str = ""
    return_code: int = -1
    transport_used: str = ""
    auth_used: str = ""
    error: str = ""

    @property
    def output(self) -> str:
        """Combined stdout and stderr."""
        return "\n".join(part for part in (self.stdout, self.stderr, self.error) if part)


class PSRemoteClient:
    """
    PowerShell runner for a single host.

    Caches the working transport+auth combination per host and user.
    """

    _connection_cache: dict[str, tuple[Transport, AuthMethod, bool]] = {}

    def __init__(self, config: ConnectionConfig) -> None:
        self.config = config
        self._session: winrm.Session | None = None
        self._working_transport: Transport | None = None
        self._working_auth: AuthMethod | None = None
        self._is_localhost: bool = self._detect_localhost()

    @property
    def is_localhost(self) -> bool:
        return self._is_localhost

    def _detect_localhost(self) -> bool:
        """Match localhost aliases and the local machine name."""
        hostname = self.config.hostname.lower().strip()
        if hostname in LOCALHOST_NAMES:
            return True

        local_name = socket.gethostname().lower()
        return hostname in (local_name, local_name.split(".")[0])

    def connect(self) -> bool:
        """
        Establish a WinRM session, trying every combination.

        Returns True immediately for localhost.
        """
        if self._is_localhost:
            return True

        cache_key = f"{self.config.hostname}:{self.config.username}"
        if cache_key in self._connection_cache:
            transport, auth, verify_ssl = self._connection_cache[cache_key]
            logger.debug("Using cached connection: %s + %s", transport.value, auth.value)
            if self._try_connect(transport, auth, verify_ssl):
                return True
            del self._connection_cache[cache_key]

        combos = [(Transport.HTTPS, auth, True) for auth in AuthMethod]
        combos += [(Transport.HTTPS, auth, False) for auth in AuthMethod]
        combos += [(Transport.HTTP, auth, False) for auth in AuthMethod]

        for transport, auth, verify_ssl in combos:
            if self._try_connect(transport, auth, verify_ssl):
                self._connection_cache[cache_key] = (transport, auth, verify_ssl)
                if transport == Transport.HTTPS and not verify_ssl:
                    logger.warning("Connected with SSL verification DISABLED - not recommended for production")
                return True

        logger.error("All connection attempts failed for %s", self.config.hostname)
        return False

    def _try_connect(self, transport: Transport, auth: AuthMethod, verify_ssl: bool) -> bool:
        """Try a single transport+auth combination."""
        port = self.config.port_https if transport == Transport.HTTPS else self.config.port_http
        endpoint = f"{transport.value}://{self.config.hostname}:{port}/wsman"

        logger.debug("Trying: %s with %s (SSL verify: %s)", endpoint, auth.value, verify_ssl)

        for attempt in range(self.config.max_retries_per_combo):
            try:
                session = winrm.Session(
                    target=endpoint,
                    auth=(self.config.username, self.config.password),
                    transport=auth.value,
                    server_cert_validation="validate" if verify_ssl else "ignore",
                    operation_timeout_sec=self.config.operation_timeout_sec,
                    read_timeout_sec=self.config.operation_timeout_sec + 10,
                )
                result = session.run_cmd("echo", ["OK"])
                if result.status_code == 0 and b"OK" in result.std_out:
                    logger.info("Connected to %s: %s + %s", self.config.hostname, transport.value, auth.value)
                    self._session = session
                    self._working_transport = transport
                    self._working_auth = auth
                    return True
            except Exception as e:  # pylint: disable=broad-except
                logger.debug("Attempt %d failed: %s - %s", attempt + 1, type(e).__name__, str(e)[:100])

        return False

    def run_ps(self, script: str) -> PSRemoteResult:
        """
        Execute a PowerShell script on the host.

        Args:
            script: PowerShell script content
        """
        if self._is_localhost:
            return self._run_local_ps(script)

        if not self._session and not self.connect():
            return PSRemoteResult(success=False, error=f"Failed to connect to {self.config.hostname}")

        try:
            result = self._session.run_ps(script)
        except (WinRMError, WinRMTransportError, RequestException) as e:
            logger.error("PowerShell execution on %s failed: %s", self.config.hostname, e)
            return PSRemoteResult(success=False, error=str(e))

        return PSRemoteResult(
            success=result.status_code == 0,
            stdout=result.std_out.decode("utf-8", errors="replace"),
            stderr=result.std_err.decode("utf-8", errors="replace"),
            return_code=result.status_code,
            transport_used=self._working_transport.value if self._working_transport else "",
            auth_used=self._working_auth.value if self._working_auth else "",
        )

    def _run_local_ps(self, script: str) -> PSRemoteResult:
        """Execute a PowerShell script with the local powershell.exe."""
        if self.config.username:
            logger.warning(
                "Credentials for %s are ignored for local execution; running as the current user",
                self.config.username,
            )

        cmd = ["powershell.exe", "-NoProfile", "-NonInteractive", "-ExecutionPolicy", "Bypass", "-Command", "-"]
        logger.debug("Executing locally: %s", script)

        try:
            result = subprocess.run(
                cmd,
                input=script,
                capture_output=True,
                text=True,
                timeout=self.config.operation_timeout_sec,
            )
        except subprocess.TimeoutExpired:
            return PSRemoteResult(
                success=False,
                error=f"Script timed out after {self.config.operation_timeout_sec}s",
                transport_used="local",
                auth_used="local",
            )
        except FileNotFoundError:
            return PSRemoteResult(
                success=False,
                error="powershell.exe not found - run on Windows or point --directory-host at a Windows host",
                transport_used="local",
                auth_used="local",
            )

        return PSRemoteResult(
            success=result.returncode == 0,
            stdout=result.stdout,
            stderr=result.stderr,
            return_code=result.returncode,
            transport_used="local",
            auth_used="local",
        )

    def close(self) -> None:
        """Close the session."""
        self._session = None

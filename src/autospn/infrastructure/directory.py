"""
Directory collaborator backed by setspn.exe.

Lists and registers SPNs by running setspn through the PowerShell runner,
either on this machine or on a domain-joined host over WinRM. Registration
uses whatever credentials the runner was created with, so remediation
needs a runner built from administrative credentials.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from autospn.domain.errors import DirectoryError, SpnConflictError
from autospn.domain.models import AccountIdentity
from autospn.infrastructure.psremote.client import PSRemoteClient, PSRemoteResult

logger = logging.getLogger(__name__)

_REGISTERED_HEADER = re.compile(r"^Registered ServicePrincipalNames for (?P<dn>.+):\s*$", re.IGNORECASE | re.MULTILINE)
_DUPLICATE_MARKER = "duplicate spn found"
_NOT_FOUND_MARKERS = ("could not find account", "finddomainforaccount")


def ps_quote(value: str) -> str:
    """Quote a value as a PowerShell single-quoted string."""
    return "'" + value.replace("'", "''") + "'"


def parse_setspn_list(output: str) -> List[str]:
    """
    Parse ``setspn -L`` output into SPN strings.

    SPNs are the indented lines that follow the
    ``Registered ServicePrincipalNames for <DN>:`` header.
    """
    spns: List[str] = []
    in_block = False
    for line in output.splitlines():
        if _REGISTERED_HEADER.match(line.strip()):
            in_block = True
            continue
        if in_block and line[:1] in (" ", "\t") and line.strip():
            spns.append(line.strip())
    return spns


def parse_duplicate_owner(output: str) -> Optional[str]:
    """Distinguished name of the object holding a duplicate SPN, if reported."""
    for line in output.splitlines():
        text = line.strip()
        if text.upper().startswith("CN="):
            return text
    return None


class SetspnDirectory:
    """
    SPN lookup and registration through setspn.

    Args:
        client: PowerShell runner for the host that executes setspn
    """

    def __init__(self, client: PSRemoteClient) -> None:
        self.client = client

    def _run_setspn(self, *args: str) -> PSRemoteResult:
        quoted = " ".join(ps_quote(arg) for arg in args)
        script = f"& setspn.exe {quoted} 2>&1 | Out-String -Width 4096\nexit $LASTEXITCODE"
        return self.client.run_ps(script)

    def list_spns(self, account: AccountIdentity, hostname: Optional[str] = None) -> List[str]:
        """
        SPNs currently registered on ``account``.

        Raises:
            DirectoryError: Account not found or setspn failed
        """
        logger.debug("Listing SPNs for %s (host context: %s)", account.principal, hostname or "-")
        result = self._run_setspn("-L", account.principal)
        output = result.output

        if any(marker in output.lower() for marker in _NOT_FOUND_MARKERS):
            raise DirectoryError(f"Account {account.principal} was not found in the directory")
        if not result.success and not _REGISTERED_HEADER.search(output):
            raise DirectoryError(
                f"setspn -L {account.principal} failed (exit {result.return_code}): {output.strip()}"
            )

        spns = parse_setspn_list(output)
        logger.info("%s has %d registered SPNs", account.principal, len(spns))
        return spns

    def register_spn(self, spn: str, account: AccountIdentity) -> None:
        """
        Register ``spn`` on ``account`` with setspn -S (duplicate checked).

        Raises:
            SpnConflictError: SPN already registered to another object
            DirectoryError: Any other failure (e.g. insufficient rights)
        """
        result = self._run_setspn("-S", spn, account.principal)
        output = result.output

        if _DUPLICATE_MARKER in output.lower():
            raise SpnConflictError(spn, owner=parse_duplicate_owner(output))
        if not result.success:
            raise DirectoryError(
                f"setspn -S {spn} {account.principal} failed (exit {result.return_code}): {output.strip()}"
            )
        logger.info("Registered %s on %s", spn, account.principal)

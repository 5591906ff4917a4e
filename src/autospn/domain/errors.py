"""
Exception taxonomy for SPN checks.

Fatal errors (topology discovery, account mismatch) abort a run before any
directory lookup. Directory errors raised during remediation propagate to
the caller unchanged.
"""


class SpnCheckError(Exception):
    """Base class for all AutoSPN errors."""


class ConfigError(SpnCheckError):
    """Invalid or missing configuration."""


class TopologyDiscoveryError(SpnCheckError):
    """Topology could not be determined from the database engine."""


class AccountMismatchError(SpnCheckError):
    """Availability group nodes run under different service accounts."""

    def __init__(self, accounts: list[str]):
        self.accounts = accounts
        listed = ", ".join(accounts)
        super().__init__(
            f"Availability group nodes use different SQL Server service accounts ({listed}). "
            "SPNs are registered against a single account, so a failover would require "
            "re-registering them and Kerberos double-hop authentication through the listener "
            "will fail. Configure every replica to run under the same domain account and re-run."
        )


class DirectoryError(SpnCheckError):
    """A directory query or mutation failed."""


class SpnConflictError(DirectoryError):
    """SPN is already registered to a different account."""

    def __init__(self, spn: str, owner: str | None = None, detail: str = ""):
        self.spn = spn
        self.owner = owner
        message = f"SPN {spn} is already registered"
        if owner:
            message += f" to {owner}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class SqlQueryError(SpnCheckError):
    """Connecting to or querying SQL Server failed."""

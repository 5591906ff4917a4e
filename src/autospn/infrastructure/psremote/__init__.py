"""
PSRemote Infrastructure Package.

PowerShell execution on the directory host, remote via pywinrm or local.
"""

from autospn.infrastructure.psremote.client import (
    ConnectionConfig,
    PSRemoteClient,
    PSRemoteResult,
)

__all__ = [
    "ConnectionConfig",
    "PSRemoteClient",
    "PSRemoteResult",
]

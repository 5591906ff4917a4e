"""
Domain layer - pure models and reconciliation functions.
"""

from .accounts import accounts_consistent, common_owner, resolve_account, split_account
from .errors import (
    AccountMismatchError,
    ConfigError,
    DirectoryError,
    SpnCheckError,
    SpnConflictError,
    SqlQueryError,
    TopologyDiscoveryError,
)
from .flags import parse_flag
from .models import (
    AccountIdentity,
    AvailabilityGroupTopology,
    ClusteredTopology,
    Endpoint,
    NodeInfo,
    ReconcileResult,
    StandaloneTopology,
    Topology,
)
from .spn import derive_endpoint_spns, missing_spns, required_spns

__all__ = [
    "AccountIdentity",
    "AccountMismatchError",
    "AvailabilityGroupTopology",
    "ClusteredTopology",
    "ConfigError",
    "DirectoryError",
    "Endpoint",
    "NodeInfo",
    "ReconcileResult",
    "SpnCheckError",
    "SpnConflictError",
    "SqlQueryError",
    "StandaloneTopology",
    "Topology",
    "TopologyDiscoveryError",
    "accounts_consistent",
    "common_owner",
    "derive_endpoint_spns",
    "missing_spns",
    "parse_flag",
    "required_spns",
    "resolve_account",
    "split_account",
]

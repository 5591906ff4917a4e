"""
SPN reconciler.

Runs the check in a fixed order: topology discovery, SPN derivation,
account resolution and consistency, existing-SPN lookup, comparison and
finally remediation. Collaborators are injected so the whole pipeline can
run against fakes.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol

from autospn.domain.accounts import common_owner, resolve_account
from autospn.domain.models import AccountIdentity, ReconcileResult, Topology
from autospn.domain.spn import SpnHelper, derive_endpoint_spns, missing_spns, required_spns

logger = logging.getLogger(__name__)


class TopologySource(Protocol):
    """Discovers the deployment shape of a SQL Server target."""

    def discover(self, server: str, availability_group: Optional[str] = None) -> Topology:
        ...


class DirectoryService(Protocol):
    """Reads and writes SPNs in the directory."""

    def list_spns(self, account: AccountIdentity, hostname: Optional[str] = None) -> List[str]:
        ...

    def register_spn(self, spn: str, account: AccountIdentity) -> None:
        ...


class SpnReconciler:
    """
    Compares the SPNs a topology needs with what the directory holds.

    Args:
        topology_source: Topology discovery collaborator
        directory: Directory used for SPN lookups
        admin_directory: Directory used for registration (administrative
            credentials). Defaults to ``directory``.
        spn_helper: Endpoint -> SPN derivation function
    """

    def __init__(
        self,
        topology_source: TopologySource,
        directory: DirectoryService,
        admin_directory: Optional[DirectoryService] = None,
        spn_helper: SpnHelper = derive_endpoint_spns,
    ) -> None:
        self.topology_source = topology_source
        self.directory = directory
        self.admin_directory = admin_directory or directory
        self.spn_helper = spn_helper

    def check(
        self,
        server: str,
        remediate: bool = False,
        availability_group: Optional[str] = None,
    ) -> ReconcileResult:
        """
        Discover ``server`` and reconcile its SPNs.

        Raises:
            TopologyDiscoveryError: Topology could not be discovered
            AccountMismatchError: Availability group replicas disagree on the account
            DirectoryError: Lookup or registration failed
        """
        logger.info(
            "Checking SPNs for %s%s",
            server,
            f" (availability group {availability_group})" if availability_group else "",
        )
        topology = self.topology_source.discover(server, availability_group)
        logger.info("Topology: %s %s", topology.kind, topology.display_name)

        return self.reconcile(topology, remediate=remediate)

    def reconcile(self, topology: Topology, remediate: bool = False) -> ReconcileResult:
        """Reconcile an already discovered topology."""
        required = required_spns(topology.endpoints, self.spn_helper)
        logger.debug("Required SPNs: %s", required)

        owner = self.resolve_owner(topology)
        logger.info("Owning account: %s", owner.principal)

        existing = self.directory.list_spns(owner, hostname=topology.members[0].endpoint.network_name)
        logger.debug("Existing SPNs on %s: %s", owner.principal, existing)

        result = ReconcileResult(
            topology=topology,
            owner=owner,
            required=required,
            existing=list(existing),
            missing=missing_spns(required, existing),
            remediate=remediate,
        )

        if not result.missing:
            logger.info(
                "All %d required SPNs are registered to %s",
                len(required),
                result.owner_label,
            )
            return result

        for spn in result.missing:
            logger.warning("Missing SPN: %s", spn)

        if remediate:
            self._register(result)
        else:
            for command in result.manual_commands:
                logger.info("To fix run: %s", command)

        return result

    def resolve_owner(self, topology: Topology) -> AccountIdentity:
        """
        Resolve the account owning the topology's SPNs.

        Every member is resolved; they must agree before the common value
        is used.
        """
        identities = [
            resolve_account(node.service_account, node.endpoint.network_name, node.default_domain)
            for node in topology.members
        ]
        return common_owner(identities)

    def _register(self, result: ReconcileResult) -> None:
        """Register each missing SPN; directory failures propagate."""
        for spn in result.missing:
            logger.info("Registering %s on %s", spn, result.owner.principal)
            self.admin_directory.register_spn(spn, result.owner)
            result.registered.append(spn)
        logger.info("Registered %d SPNs on %s", len(result.registered), result.owner.principal)


"""
Shared fixtures and collaborator fakes for AutoSPN tests.
"""

import logging
from typing import Dict, List, Optional

import pytest

from autospn.domain.models import (
    AccountIdentity,
    AvailabilityGroupTopology,
    Endpoint,
    NodeInfo,
    StandaloneTopology,
)


class FakeTopologySource:
    """Returns a fixed topology and records discover() calls."""

    def __init__(self, topology):
        self.topology = topology
        self.calls = []

    def discover(self, server, availability_group=None):
        self.calls.append((server, availability_group))
        return self.topology


class FakeDirectory:
    """In-memory directory keyed by principal (case-insensitive)."""

    def __init__(self, spns: Optional[Dict[str, List[str]]] = None):
        self.spns = {key.casefold(): list(value) for key, value in (spns or {}).items()}
        self.list_calls = []
        self.register_calls = []

    def list_spns(self, account: AccountIdentity, hostname=None):
        self.list_calls.append((account.principal, hostname))
        return list(self.spns.get(account.key, []))

    def register_spn(self, spn: str, account: AccountIdentity):
        self.register_calls.append((spn, account.principal))
        self.spns.setdefault(account.key, []).append(spn)


def make_node(name: str, account: str, port: int = 1433, instance: Optional[str] = None,
              domain: Optional[str] = "ABCORP") -> NodeInfo:
    return NodeInfo(
        endpoint=Endpoint(network_name=name, port=port, instance_name=instance),
        service_account=account,
        default_domain=domain,
    )


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo setup_logging() handlers installed by CLI invocations."""
    root = logging.getLogger()
    before, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        if handler not in before:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


@pytest.fixture
def standalone_topology():
    """host1\\INST1 on 1433 running as ABCORP\\sqlsvc."""
    return StandaloneTopology(node=make_node("host1", "ABCORP\\sqlsvc", instance="INST1"))


@pytest.fixture
def ag_topology():
    """Two replicas plus listener, all under ABCORP\\sqlsvc."""
    return AvailabilityGroupTopology(
        name="AG_Sales",
        nodes=[
            make_node("node1", "ABCORP\\sqlsvc"),
            make_node("node2", "abcorp\\SQLSVC"),
        ],
        listener=Endpoint(network_name="aglisten", port=1433),
    )

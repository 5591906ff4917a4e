"""
Domain models for SPN reconciliation.

Topologies are a tagged union keyed on ``kind`` so each reconciliation step
can work on the variant directly instead of re-checking a mode flag.
"""

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Endpoint(BaseModel):
    """A SQL Server network endpoint (node or listener)."""

    model_config = ConfigDict(frozen=True)

    network_name: str = Field(..., description="NetBIOS or DNS name clients connect to")
    port: int = Field(1433, description="TCP port the endpoint listens on")
    instance_name: Optional[str] = Field(None, description="Named instance (None for default)")
    dns_domain: Optional[str] = Field(None, description="DNS domain used to build the FQDN form")

    @field_validator("network_name")
    @classmethod
    def validate_network_name(cls, v: str) -> str:
        """Network name cannot be empty."""
        if not v or not v.strip():
            raise ValueError("Network name cannot be empty")
        return v.strip()

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port number."""
        if v < 1 or v > 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator("instance_name", "dns_domain")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    @property
    def short_name(self) -> str:
        """Host name without DNS suffix."""
        return self.network_name.split(".")[0]


class NodeInfo(BaseModel):
    """One SQL Server instance and the account its service runs under."""

    model_config = ConfigDict(frozen=True)

    endpoint: Endpoint
    service_account: str = Field(..., description="Raw service account as reported by the engine")
    default_domain: Optional[str] = Field(None, description="Domain the engine host belongs to")


class StandaloneTopology(BaseModel):
    """Single, non-clustered instance."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["standalone"] = "standalone"
    node: NodeInfo

    @property
    def members(self) -> List[NodeInfo]:
        return [self.node]

    @property
    def endpoints(self) -> List[Endpoint]:
        return [self.node.endpoint]

    @property
    def display_name(self) -> str:
        return self.node.endpoint.network_name


class ClusteredTopology(BaseModel):
    """Failover cluster instance; the endpoint is the virtual network name."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["clustered"] = "clustered"
    node: NodeInfo

    @property
    def members(self) -> List[NodeInfo]:
        return [self.node]

    @property
    def endpoints(self) -> List[Endpoint]:
        return [self.node.endpoint]

    @property
    def display_name(self) -> str:
        return self.node.endpoint.network_name


class AvailabilityGroupTopology(BaseModel):
    """Availability group: replica nodes plus a virtual listener."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["availability_group"] = "availability_group"
    name: str
    nodes: List[NodeInfo] = Field(..., min_length=1)
    listener: Endpoint

    @property
    def members(self) -> List[NodeInfo]:
        return list(self.nodes)

    @property
    def endpoints(self) -> List[Endpoint]:
        return [node.endpoint for node in self.nodes] + [self.listener]

    @property
    def display_name(self) -> str:
        return f"{self.name} ({self.listener.network_name})"


Topology = Annotated[
    Union[StandaloneTopology, ClusteredTopology, AvailabilityGroupTopology],
    Field(discriminator="kind"),
]


class AccountIdentity(BaseModel):
    """A directory account that owns SPNs."""

    model_config = ConfigDict(frozen=True)

    domain: str = ""
    name: str
    is_machine: bool = False

    @property
    def principal(self) -> str:
        """Account in DOMAIN\\name form (name only when the domain is unknown)."""
        if self.domain:
            return f"{self.domain}\\{self.name}"
        return self.name

    @property
    def key(self) -> str:
        """Case-insensitive comparison key."""
        return self.principal.casefold()


class ReconcileResult(BaseModel):
    """Outcome of one reconciliation run."""

    topology: Topology
    owner: AccountIdentity
    required: List[str] = Field(default_factory=list)
    existing: List[str] = Field(default_factory=list)
    missing: List[str] = Field(default_factory=list)
    registered: List[str] = Field(default_factory=list)
    remediate: bool = False

    @property
    def outstanding(self) -> List[str]:
        """Missing SPNs that were not registered during this run."""
        done = {spn.casefold() for spn in self.registered}
        return [spn for spn in self.missing if spn.casefold() not in done]

    @property
    def is_compliant(self) -> bool:
        return not self.outstanding

    @property
    def manual_commands(self) -> List[str]:
        """SETSPN commands an administrator can run for outstanding SPNs."""
        return [f"SETSPN -s {spn} {self.owner.principal}" for spn in self.outstanding]

    @property
    def owner_label(self) -> str:
        """Service account, or the host's machine identity for virtual accounts."""
        if self.owner.is_machine:
            host = self.topology.members[0].endpoint.short_name.upper()
            return f"the machine account of {host} ({self.owner.principal})"
        return self.owner.principal

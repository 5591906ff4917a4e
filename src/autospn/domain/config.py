"""
Configuration models for batch SPN checks.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .flags import parse_flag


class AuthType(str, Enum):
    """SQL Server authentication method."""

    INTEGRATED = "integrated"
    SQL = "sql"


class SpnTarget(BaseModel):
    """A SQL Server target to check."""

    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    id: str = Field(..., description="Unique identifier/alias for this target")
    server: str = Field(..., description="HOST, HOST\\INSTANCE or HOST,PORT")
    availability_group: Optional[str] = Field(None, description="Availability group name")
    remediate: bool = Field(False, description="Register missing SPNs")
    auth: AuthType = Field(AuthType.INTEGRATED, description="SQL authentication method")
    username: Optional[str] = Field(None, description="SQL login (auth=sql)")
    password: Optional[str] = Field(None, description="SQL password (testing only)")
    credential_file: Optional[str] = Field(None, description="JSON file with SQL credentials")
    dns_domain: Optional[str] = Field(None, description="DNS suffix for FQDN SPN forms")
    connect_timeout: int = Field(30, description="Seconds to wait for SQL connection")
    enabled: bool = Field(True, description="Whether this target is checked")

    @field_validator("server")
    @classmethod
    def validate_server(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Server name cannot be empty")
        return v.strip()

    @field_validator("remediate", mode="before")
    @classmethod
    def parse_remediate(cls, v):
        """Accept yes/no/1/0 as well as JSON booleans."""
        return parse_flag(v)


class DirectorySettings(BaseModel):
    """Where setspn runs and with which credentials."""

    model_config = ConfigDict(extra="ignore")

    host: str = Field("localhost", description="Host that runs setspn")
    username: Optional[str] = Field(None, description="Administrative account for registration")
    password: Optional[str] = Field(None, description="Administrative password (testing only)")
    credential_file: Optional[str] = Field(None, description="JSON file with administrative credentials")


class TargetsConfig(BaseModel):
    """Contents of spn_targets.json."""

    model_config = ConfigDict(extra="ignore")

    targets: List[SpnTarget] = Field(default_factory=list)
    directory: DirectorySettings = Field(default_factory=DirectorySettings)

    @property
    def enabled_targets(self) -> List[SpnTarget]:
        return [target for target in self.targets if target.enabled]

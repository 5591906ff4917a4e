"""
Topology discovery.

Queries the database engine to classify a target as standalone, failover
cluster instance or availability group, and collects the network name,
TCP port and service account of every member.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Tuple

from autospn.domain.errors import SqlQueryError, TopologyDiscoveryError
from autospn.domain.models import (
    AvailabilityGroupTopology,
    ClusteredTopology,
    Endpoint,
    NodeInfo,
    StandaloneTopology,
    Topology,
)

if TYPE_CHECKING:
    from autospn.infrastructure.sql_server import SqlConnector

logger = logging.getLogger(__name__)

DEFAULT_PORT = 1433

INSTANCE_QUERY = """
SELECT
    CAST(SERVERPROPERTY('IsHadrEnabled') AS INT) AS IsHadrEnabled,
    CAST(SERVERPROPERTY('IsClustered') AS INT) AS IsClustered,
    CAST(SERVERPROPERTY('MachineName') AS NVARCHAR(256)) AS MachineName,
    CAST(SERVERPROPERTY('InstanceName') AS NVARCHAR(256)) AS InstanceName,
    CAST(DEFAULT_DOMAIN() AS NVARCHAR(256)) AS DefaultDomain,
    (SELECT TOP 1 CAST(service_account AS NVARCHAR(256))
        FROM sys.dm_server_services
        WHERE servicename LIKE 'SQL Server (%') AS ServiceAccount,
    (SELECT TOP 1 local_tcp_port
        FROM sys.dm_exec_connections
        WHERE session_id = @@SPID) AS TcpPort,
    (SELECT TOP 1 CAST(value_data AS NVARCHAR(32))
        FROM sys.dm_server_registry
        WHERE registry_key LIKE '%IPAll'
          AND value_name IN ('TcpPort', 'TcpDynamicPorts')
          AND CAST(value_data AS NVARCHAR(32)) <> ''
        ORDER BY value_name DESC) AS RegistryPort
"""

AVAILABILITY_GROUP_QUERY = """
SELECT
    ar.replica_server_name AS ReplicaServerName,
    agl.dns_name AS ListenerName,
    agl.port AS ListenerPort
FROM sys.availability_groups AS ag
JOIN sys.availability_replicas AS ar ON ar.group_id = ag.group_id
LEFT JOIN sys.availability_group_listeners AS agl ON agl.group_id = ag.group_id
WHERE ag.name = ?
ORDER BY ar.replica_server_name
"""

ConnectorFactory = Callable[[str], "SqlConnector"]
# host name -> fully qualified name, as socket.getfqdn
FqdnResolver = Callable[[str], str]


def parse_server_identifier(server: str) -> Tuple[str, Optional[str], Optional[int]]:
    """
    Split ``HOST[\\INSTANCE][,PORT]`` into its parts.

    Returns:
        (host, instance or None, port or None)
    """
    value = server.strip()
    if not value:
        raise ValueError("Server identifier cannot be empty")

    port: Optional[int] = None
    if "," in value:
        value, port_text = value.rsplit(",", 1)
        try:
            port = int(port_text.strip())
        except ValueError as e:
            raise ValueError(f"Invalid port in server identifier: {server!r}") from e

    instance: Optional[str] = None
    if "\\" in value:
        value, instance = value.split("\\", 1)
        instance = instance.strip() or None

    return value.strip(), instance, port


def _coerce_port(row: Dict[str, Any], fallback: Optional[int]) -> int:
    """TCP port from the session, then the registry, then the identifier."""
    for key in ("TcpPort", "RegistryPort"):
        value = row.get(key)
        if value in (None, ""):
            continue
        try:
            return int(str(value).split(",")[0].strip())
        except ValueError:
            logger.debug("Ignoring non-numeric %s value %r", key, value)
    return fallback or DEFAULT_PORT


class SqlTopologyDiscovery:
    """
    Topology discovery over pyodbc.

    Args:
        connector_factory: Builds a SqlConnector for a server identifier
        dns_domain: DNS suffix used to add FQDN SPN forms for short names
        fqdn_resolver: Looks up the DNS suffix of short names when no
            dns_domain is given (for example socket.getfqdn)
    """

    def __init__(
        self,
        connector_factory: ConnectorFactory,
        dns_domain: Optional[str] = None,
        fqdn_resolver: Optional[FqdnResolver] = None,
    ) -> None:
        self.connector_factory = connector_factory
        self.dns_domain = dns_domain
        self.fqdn_resolver = fqdn_resolver

    def discover(self, server: str, availability_group: Optional[str] = None) -> Topology:
        """
        Discover the topology of ``server``.

        Raises:
            TopologyDiscoveryError: Engine unreachable, malformed server
                identifier, or the availability group query returned nothing
        """
        try:
            parse_server_identifier(server)
        except ValueError as e:
            raise TopologyDiscoveryError(str(e)) from e

        connector = self.connector_factory(server)
        row = self._query_instance(connector, server)

        if row.get("IsHadrEnabled") and availability_group:
            return self._discover_availability_group(connector, server, availability_group)

        if row.get("IsHadrEnabled"):
            logger.warning(
                "%s has HADR enabled but no availability group was given; checking the instance only",
                server,
            )
        elif availability_group:
            logger.warning(
                "%s does not have HADR enabled; ignoring availability group %s",
                server, availability_group,
            )

        node = self._node_from_row(row, server)
        if row.get("IsClustered"):
            return ClusteredTopology(node=node)
        return StandaloneTopology(node=node)

    def _query_instance(self, connector: SqlConnector, server: str) -> Dict[str, Any]:
        try:
            rows = connector.execute_query(INSTANCE_QUERY)
        except SqlQueryError as e:
            raise TopologyDiscoveryError(f"Cannot query SQL Server {server}: {e}") from e

        if not rows:
            raise TopologyDiscoveryError(f"SQL Server {server} returned no instance information")

        row = rows[0]
        if not row.get("ServiceAccount"):
            raise TopologyDiscoveryError(
                f"Cannot read the SQL Server service account on {server} "
                "(VIEW SERVER STATE permission is required)"
            )
        return row

    def _domain_for(self, name: str) -> Optional[str]:
        """Configured DNS suffix, else the one the resolver reports for a short name."""
        if self.dns_domain or self.fqdn_resolver is None or "." in name:
            return self.dns_domain
        try:
            fqdn = self.fqdn_resolver(name)
        except OSError as e:
            logger.warning("Cannot resolve FQDN of %s: %s", name, e)
            return None
        short, _, suffix = fqdn.partition(".")
        if suffix and short.casefold() == name.casefold():
            logger.debug("Resolved %s to %s", name, fqdn)
            return suffix
        logger.warning("Cannot determine the DNS domain of %s; FQDN SPN forms are not checked", name)
        return None

    def _endpoint(self, server: str, **fields: Any) -> Endpoint:
        fields["dns_domain"] = self._domain_for(fields["network_name"])
        try:
            return Endpoint(**fields)
        except ValueError as e:
            raise TopologyDiscoveryError(f"Invalid endpoint reported by {server}: {e}") from e

    def _node_from_row(self, row: Dict[str, Any], server: str) -> NodeInfo:
        try:
            host, instance, port = parse_server_identifier(server)
        except ValueError as e:
            raise TopologyDiscoveryError(str(e)) from e
        endpoint = self._endpoint(
            server,
            network_name=row.get("MachineName") or host,
            port=_coerce_port(row, port),
            instance_name=row.get("InstanceName") or instance,
        )
        return NodeInfo(
            endpoint=endpoint,
            service_account=row["ServiceAccount"],
            default_domain=row.get("DefaultDomain") or None,
        )

    def _discover_availability_group(
        self, connector: SqlConnector, server: str, availability_group: str
    ) -> AvailabilityGroupTopology:
        try:
            rows = connector.execute_query(AVAILABILITY_GROUP_QUERY, (availability_group,))
        except SqlQueryError as e:
            raise TopologyDiscoveryError(
                f"Cannot query availability group {availability_group} on {server}: {e}"
            ) from e

        if not rows:
            raise TopologyDiscoveryError(
                f"Availability group {availability_group} was not found on {server}"
            )

        listener_row = next((r for r in rows if r.get("ListenerName")), None)
        if listener_row is None:
            raise TopologyDiscoveryError(
                f"Availability group {availability_group} has no listener configured"
            )

        nodes = []
        for replica in dict.fromkeys(r["ReplicaServerName"] for r in rows):
            logger.info("Querying replica %s", replica)
            replica_row = self._query_instance(self.connector_factory(replica), replica)
            nodes.append(self._node_from_row(replica_row, replica))

        listener = self._endpoint(
            server,
            network_name=listener_row["ListenerName"],
            port=listener_row.get("ListenerPort") or nodes[0].endpoint.port,
        )
        logger.info(
            "Availability group %s: %d replicas, listener %s:%d",
            availability_group, len(nodes), listener.network_name, listener.port,
        )
        return AvailabilityGroupTopology(name=availability_group, nodes=nodes, listener=listener)

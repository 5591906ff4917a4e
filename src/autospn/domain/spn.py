"""
SPN derivation and set reconciliation.

Everything here is pure: the RequiredSet comes from the topology alone and
MissingSet is a case-insensitive set difference.
"""

from itertools import chain
from typing import Callable, Dict, Iterable, List

from .models import Endpoint

SQL_SPN_PREFIX = "MSSQLSvc/"
DEFAULT_INSTANCE = "MSSQLSERVER"

# Platform helper: endpoint -> SPN strings a SQL Server service registers for it
SpnHelper = Callable[[Endpoint], Iterable[str]]


def host_forms(endpoint: Endpoint) -> List[str]:
    """Host names an endpoint is reachable by (short and FQDN when known)."""
    names = [endpoint.network_name]
    if endpoint.dns_domain and "." not in endpoint.network_name:
        names.append(f"{endpoint.network_name}.{endpoint.dns_domain}")
    return names


def derive_endpoint_spns(endpoint: Endpoint) -> List[str]:
    """
    SPNs SQL Server registers for an endpoint.

    Port form for every host name, plus the instance form for named
    instances or the bare host form for the default instance.
    """
    instance = endpoint.instance_name
    if instance and instance.upper() == DEFAULT_INSTANCE:
        instance = None

    spns = []
    for host in host_forms(endpoint):
        spns.append(f"{SQL_SPN_PREFIX}{host}:{endpoint.port}")
        spns.append(f"{SQL_SPN_PREFIX}{host}:{instance}" if instance else f"{SQL_SPN_PREFIX}{host}")
    return spns


def is_sql_spn(spn: str) -> bool:
    return spn.casefold().startswith(SQL_SPN_PREFIX.casefold())


def _unique(spns: Iterable[str]) -> List[str]:
    """Collapse case-insensitive duplicates, keeping the first spelling."""
    seen: Dict[str, str] = {}
    for spn in spns:
        seen.setdefault(spn.casefold(), spn)
    return list(seen.values())


def required_spns(endpoints: Iterable[Endpoint], helper: SpnHelper = derive_endpoint_spns) -> List[str]:
    """Union of SQL SPNs derived for every endpoint; non-SQL SPNs are dropped."""
    derived = chain.from_iterable(helper(endpoint) for endpoint in endpoints)
    return _unique(spn.strip() for spn in derived if is_sql_spn(spn.strip()))


def missing_spns(required: Iterable[str], existing: Iterable[str]) -> List[str]:
    """RequiredSet minus ExistingSet, case-insensitive."""
    present = {spn.strip().casefold() for spn in existing}
    return [spn for spn in _unique(required) if spn.casefold() not in present]


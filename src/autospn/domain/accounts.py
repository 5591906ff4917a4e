"""
Service account resolution.

Turns the raw service account reported by SQL Server into the directory
account that owns the instance's SPNs, and checks that availability group
replicas agree on it.
"""

from typing import Iterable, Optional, Sequence, Tuple

from .errors import AccountMismatchError, TopologyDiscoveryError
from .models import AccountIdentity

# sAMAccountName length limit
MAX_ACCOUNT_NAME_LENGTH = 20

# Services running under these register SPNs on the computer account
MACHINE_ACCOUNT_DOMAINS = {"nt service", "nt authority"}
BUILTIN_MACHINE_ACCOUNTS = {"localsystem", "localservice", "networkservice"}


def split_account(raw: str) -> Tuple[str, str]:
    """
    Split a raw account string into (domain, account).

    ``DOMAIN\\account`` splits on the first backslash. ``account@domain``
    splits on ``@`` and the account part is truncated to the directory's
    20 character limit. Anything else is an account with no domain.
    """
    value = (raw or "").strip()
    if "\\" in value:
        domain, account = value.split("\\", 1)
        return domain.strip(), account.strip()
    if "@" in value:
        account, domain = value.split("@", 1)
        return domain.strip(), account.strip()[:MAX_ACCOUNT_NAME_LENGTH]
    return "", value


def is_machine_account(domain: str, account: str) -> bool:
    """True when the service uses the computer account of its host."""
    if domain.casefold() in MACHINE_ACCOUNT_DOMAINS:
        return True
    return not domain and account.casefold() in BUILTIN_MACHINE_ACCOUNTS


def resolve_account(raw: str, host: str, default_domain: Optional[str] = None) -> AccountIdentity:
    """
    Resolve a raw service account to the account owning the SPNs.

    A UPN whose DNS domain starts with the host's NetBIOS domain is reported
    under the NetBIOS domain, so ``sqlsvc@abcorp.local`` and ``ABCORP\\sqlsvc``
    resolve to the same identity.

    Args:
        raw: Service account as reported by the engine
        host: Host the service runs on (used for machine accounts)
        default_domain: Domain of the host, used when the account has none

    Returns:
        AccountIdentity

    Raises:
        TopologyDiscoveryError: If no account name can be read from ``raw``
    """
    domain, account = split_account(raw)

    if is_machine_account(domain, account):
        computer = host.split("\\")[0].split(".")[0].upper()
        return AccountIdentity(domain=default_domain or "", name=f"{computer}$", is_machine=True)

    if not account:
        raise TopologyDiscoveryError(f"Cannot resolve service account from {raw!r}")

    if default_domain and "." in domain and domain.split(".")[0].casefold() == default_domain.casefold():
        domain = default_domain

    return AccountIdentity(domain=domain or default_domain or "", name=account)


def accounts_consistent(names: Iterable[str]) -> bool:
    """True when every account name is the same, ignoring case."""
    return len({name.casefold() for name in names}) <= 1


def common_owner(identities: Sequence[AccountIdentity]) -> AccountIdentity:
    """
    Return the single account shared by all identities.

    Identities are compared by account name. The owner is the first one
    carrying a NetBIOS domain, since setspn does not accept DNS domains in
    ``DOMAIN\\account`` form.

    Raises:
        AccountMismatchError: If the account names disagree
        TopologyDiscoveryError: If no identities were given
    """
    if not identities:
        raise TopologyDiscoveryError("No service accounts to compare")

    if not accounts_consistent(identity.name for identity in identities):
        raise AccountMismatchError(list(dict.fromkeys(identity.principal for identity in identities)))
    return next((identity for identity in identities if "." not in identity.domain), identities[0])

"""
Tests for service account resolution and the cross-node consistency check.
"""

import pytest

from autospn.domain.accounts import (
    accounts_consistent,
    common_owner,
    resolve_account,
    split_account,
)
from autospn.domain.errors import AccountMismatchError, TopologyDiscoveryError
from autospn.domain.models import AccountIdentity


class TestSplitAccount:
    """Raw account string parsing."""

    def test_backslash_form(self):
        assert split_account("ABCORP\\sqlsvc") == ("ABCORP", "sqlsvc")

    def test_backslash_form_trims_whitespace(self):
        assert split_account("  ABCORP \\ sqlsvc ") == ("ABCORP", "sqlsvc")

    def test_splits_on_first_backslash_only(self):
        assert split_account("ABCORP\\svc\\extra") == ("ABCORP", "svc\\extra")

    def test_upn_form_truncates_account_to_20_characters(self):
        domain, account = split_account("sqlsvc12345678901234567890@abcorp.local")
        assert domain == "abcorp.local"
        assert account == "sqlsvc12345678901234"
        assert len(account) == 20

    def test_short_upn_is_not_truncated(self):
        assert split_account("sqlsvc@abcorp.local") == ("abcorp.local", "sqlsvc")

    def test_bare_name_has_no_domain(self):
        assert split_account("sqlsvc") == ("", "sqlsvc")


class TestResolveAccount:
    """Owning-account resolution."""

    def test_domain_account(self):
        identity = resolve_account("ABCORP\\sqlsvc", "host1", "ABCORP")
        assert identity == AccountIdentity(domain="ABCORP", name="sqlsvc")
        assert identity.principal == "ABCORP\\sqlsvc"
        assert not identity.is_machine

    def test_nt_service_resolves_to_computer_account(self):
        identity = resolve_account("NT Service\\MSSQL$INST1", "host1.abcorp.local", "ABCORP")
        assert identity.is_machine
        assert identity.principal == "ABCORP\\HOST1$"

    def test_nt_service_marker_is_case_insensitive(self):
        assert resolve_account("nt service\\MSSQLSERVER", "host1", "ABCORP").is_machine

    def test_local_system_is_machine_account(self):
        identity = resolve_account("LocalSystem", "host1", "ABCORP")
        assert identity.is_machine
        assert identity.name == "HOST1$"

    def test_network_service_is_machine_account(self):
        assert resolve_account("NT AUTHORITY\\NETWORK SERVICE", "host1", "ABCORP").is_machine

    def test_bare_name_uses_default_domain(self):
        assert resolve_account("sqlsvc", "host1", "ABCORP").principal == "ABCORP\\sqlsvc"

    def test_empty_account_rejected(self):
        with pytest.raises(TopologyDiscoveryError):
            resolve_account("  ", "host1", "ABCORP")

    def test_domain_without_account_rejected(self):
        with pytest.raises(TopologyDiscoveryError, match="ABCORP"):
            resolve_account("ABCORP\\", "host1", "ABCORP")

    def test_upn_in_host_domain_uses_netbios_domain(self):
        identity = resolve_account("sqlsvc@abcorp.local", "host1", "ABCORP")
        assert identity.principal == "ABCORP\\sqlsvc"

    def test_upn_in_other_domain_keeps_dns_domain(self):
        identity = resolve_account("sqlsvc@partner.example", "host1", "ABCORP")
        assert identity.principal == "partner.example\\sqlsvc"


class TestConsistency:
    """Cross-node account consistency."""

    def test_identical_names_are_consistent(self):
        assert accounts_consistent(["svc1", "svc1"])

    def test_different_names_are_inconsistent(self):
        assert not accounts_consistent(["svc1", "svc2"])

    def test_comparison_ignores_case(self):
        assert accounts_consistent(["ABCORP\\SqlSvc", "abcorp\\sqlsvc"])

    def test_single_and_empty_are_consistent(self):
        assert accounts_consistent(["svc1"])
        assert accounts_consistent([])

    def test_common_owner_returns_first_identity(self):
        first = AccountIdentity(domain="ABCORP", name="SqlSvc")
        second = AccountIdentity(domain="abcorp", name="sqlsvc")
        assert common_owner([first, second]) is first

    def test_common_owner_mismatch_message(self):
        with pytest.raises(AccountMismatchError) as exc_info:
            common_owner([
                AccountIdentity(domain="ABCORP", name="svc1"),
                AccountIdentity(domain="ABCORP", name="svc2"),
            ])
        message = str(exc_info.value)
        assert "ABCORP\\svc1" in message and "ABCORP\\svc2" in message
        assert "double-hop" in message
        assert exc_info.value.accounts == ["ABCORP\\svc1", "ABCORP\\svc2"]

    def test_common_owner_compares_account_names(self):
        upn = AccountIdentity(domain="abcorp.local", name="sqlsvc")
        netbios = AccountIdentity(domain="ABCORP", name="SQLSVC")
        assert common_owner([upn, netbios]) is netbios

    def test_common_owner_requires_identities(self):
        with pytest.raises(TopologyDiscoveryError):
            common_owner([])

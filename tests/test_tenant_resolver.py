import pytest

from inbox_api.services.errors import InvalidSubdomain, MissingHost
from inbox_api.services.tenant_service import (
    TenantRecord,
    extract_slug,
    is_loopback_host,
    resolve_tenant_slug,
)


class TestExtractSlug:
    def test_subdomain_of_production_domain(self):
        assert extract_slug("acme.inbox.example.com") == "acme"

    def test_port_is_ignored(self):
        assert extract_slug("acme.localhost:3333") == "acme"

    def test_lowercased(self):
        assert extract_slug("ACME.inbox.example.com") == "acme"

    def test_single_label_has_no_slug(self):
        assert extract_slug("localhost:3333") is None

    def test_invalid_characters(self):
        assert extract_slug("bad_slug!.inbox.example.com") is None

    def test_reserved_labels(self):
        assert extract_slug("127.0.0.1") is None
        assert extract_slug("0.0.0.0:8000") is None

    def test_hyphenated_slug(self):
        assert extract_slug("d-kape.inbox.example.com") == "d-kape"


class TestResolveTenantSlug:
    def test_host_with_subdomain(self):
        assert resolve_tenant_slug("acme.inbox.example.com") == "acme"

    def test_forwarded_host_wins(self):
        assert resolve_tenant_slug("internal:8000", "globex.inbox.example.com") == "globex"

    def test_forwarded_host_list_uses_first_entry(self):
        assert resolve_tenant_slug(None, "globex.inbox.example.com, proxy.internal") == "globex"

    def test_localhost_falls_back_to_default(self):
        assert resolve_tenant_slug("localhost:3333", default_slug="crunchypaws") == "crunchypaws"

    def test_loopback_ip_falls_back_to_default(self):
        assert resolve_tenant_slug("127.0.0.1:8000", default_slug="crunchypaws") == "crunchypaws"

    def test_ipv6_loopback_falls_back_to_default(self):
        assert resolve_tenant_slug("[::1]:8000", default_slug="crunchypaws") == "crunchypaws"

    def test_public_single_label_host_rejected(self):
        with pytest.raises(InvalidSubdomain):
            resolve_tenant_slug("evilhost", default_slug="crunchypaws")

    def test_forwarded_single_label_host_rejected(self):
        with pytest.raises(InvalidSubdomain):
            resolve_tenant_slug("localhost", "intranet:8080")

    def test_default_comes_from_settings(self):
        from inbox_api.config import settings

        assert resolve_tenant_slug("localhost") == settings.default_tenant_slug

    def test_invalid_subdomain(self):
        with pytest.raises(InvalidSubdomain):
            resolve_tenant_slug("bad_slug!.inbox.example.com")

    def test_missing_host(self):
        with pytest.raises(MissingHost):
            resolve_tenant_slug(None, None)

    def test_blank_host(self):
        with pytest.raises(MissingHost):
            resolve_tenant_slug("   ")


class TestLoopback:
    @pytest.mark.parametrize("host", ["localhost", "localhost:4200", "127.0.0.1", "0.0.0.0:80", "[::1]", "localhost.localdomain"])
    def test_loopback_hosts(self, host):
        assert is_loopback_host(host) is True

    def test_public_host(self):
        assert is_loopback_host("acme.inbox.example.com") is False


class TestTenantRecord:
    def test_secret_not_in_repr(self):
        record = TenantRecord(id=1, slug="acme", name="Acme", provider_account_id="AC1", provider_auth_secret="s3cr3t")
        assert "s3cr3t" not in repr(record)

    def test_credential_flags(self):
        record = TenantRecord(id=1, slug="acme", name="Acme", provider_account_id="AC1")
        assert record.credential_flags() == {
            "has_account_id": True,
            "has_auth_secret": False,
            "has_sender_address": False,
        }
        assert record.has_credentials is False

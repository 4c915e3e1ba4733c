"""Unit tests for hostname parsing and classification."""
import pytest

from domainrouter.services.hostnames import HostKind, classify_hostname, parse_hostname

MAIN = {"platform.io", "www.platform.io", "api.platform.io", "app.platform.io", "localhost"}
RESERVED = {"www", "api", "app", "admin", "mail"}


def _classify(hostname):
    return classify_hostname(
        hostname,
        main_domains=MAIN,
        apex_domain="platform.io",
        reserved=RESERVED,
        local_suffixes={"localhost", "local"},
    )


def test_forwarded_host_wins_over_host():
    headers = {"host": "internal:8080", "x-forwarded-host": "Sunset.Platform.io"}
    assert parse_hostname(headers) == "sunset.platform.io"


def test_forwarded_host_first_value_of_chain():
    headers = {"host": "internal", "x-forwarded-host": "book.sunset.com, proxy.internal"}
    assert parse_hostname(headers) == "book.sunset.com"


def test_forwarded_host_ignored_when_untrusted():
    headers = {"host": "sunset.platform.io", "x-forwarded-host": "evil.example.com"}
    assert parse_hostname(headers, trust_forwarded=False) == "sunset.platform.io"


def test_port_is_stripped():
    assert parse_hostname({"host": "sunset.localhost:3000"}) == "sunset.localhost"


def test_ipv6_literal_keeps_brackets():
    assert parse_hostname({"host": "[::1]:8000"}) == "[::1]"


def test_missing_host_is_empty():
    assert parse_hostname({}) == ""


@pytest.mark.parametrize("hostname", ["platform.io", "www.platform.io", "localhost"])
def test_main_domains(hostname):
    assert _classify(hostname).kind is HostKind.MAIN


def test_reserved_subdomain():
    result = _classify("admin.platform.io")
    assert result.kind is HostKind.RESERVED
    assert result.slug == "admin"


def test_tenant_subdomain_of_apex():
    result = _classify("sunset.platform.io")
    assert result.kind is HostKind.TENANT_SUBDOMAIN
    assert result.slug == "sunset"


def test_tenant_subdomain_of_localhost():
    result = _classify("sunset.localhost")
    assert result.kind is HostKind.TENANT_SUBDOMAIN
    assert result.slug == "sunset"


def test_custom_domain_is_opaque():
    result = _classify("book.sunsetlodge.com")
    assert result.kind is HostKind.OPAQUE
    assert result.slug is None


def test_lookalike_apex_is_not_a_subdomain():
    assert _classify("sunsetplatform.io").kind is HostKind.OPAQUE


@pytest.mark.parametrize(
    "hostname",
    ["platform.io", "admin.platform.io", "sunset.platform.io", "sunset.localhost", "book.sunsetlodge.com", ""],
)
def test_classification_is_stable(hostname):
    assert _classify(hostname) == _classify(hostname)

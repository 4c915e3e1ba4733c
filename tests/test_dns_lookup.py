"""CNAME lookup error mapping and target matching (dnspython resolver patched)."""
import dns.exception
import dns.name
import dns.resolver
import pytest

from domainrouter.services.dns_lookup import CnameLookup, cname_matches, normalize_target
from domainrouter.services.errors import DnsLookupError


class _Rdata:
    def __init__(self, target):
        self.target = dns.name.from_text(target)


def _patch_resolve(monkeypatch, result=None, exc=None):
    def _resolve(self, qname, rdtype):
        assert rdtype == "CNAME"
        if exc is not None:
            raise exc
        return result

    monkeypatch.setattr(dns.resolver.Resolver, "resolve", _resolve)


def test_targets_are_normalized(monkeypatch):
    _patch_resolve(monkeypatch, result=[_Rdata("Domains.Platform.IO.")])
    assert CnameLookup(timeout=1, nameservers=["127.0.0.1"])("book.sunsetlodge.com") == ["domains.platform.io"]


@pytest.mark.parametrize(
    "exc, code",
    [
        (dns.resolver.NXDOMAIN(), DnsLookupError.NXDOMAIN),
        (dns.resolver.NoAnswer(), DnsLookupError.NODATA),
        (dns.exception.Timeout(), DnsLookupError.TIMEOUT),
        (dns.resolver.NoNameservers(), DnsLookupError.NO_NAMESERVERS),
        (dns.exception.DNSException("boom"), DnsLookupError.ERROR),
    ],
)
def test_resolver_errors_map_to_codes(monkeypatch, exc, code):
    _patch_resolve(monkeypatch, exc=exc)
    with pytest.raises(DnsLookupError) as raised:
        CnameLookup(timeout=1, nameservers=["127.0.0.1"])("book.sunsetlodge.com")
    assert raised.value.code == code


def test_empty_answer_is_nodata(monkeypatch):
    _patch_resolve(monkeypatch, result=[])
    with pytest.raises(DnsLookupError) as raised:
        CnameLookup(timeout=1, nameservers=["127.0.0.1"])("book.sunsetlodge.com")
    assert raised.value.record_missing


def test_cname_matches_exact_and_sublabel():
    assert cname_matches(["domains.platform.io"], "domains.platform.io")
    assert cname_matches(["edge-3.domains.platform.io."], "domains.platform.io")
    assert cname_matches(["other.example.com", "DOMAINS.platform.io"], "domains.platform.io")


def test_cname_mismatch():
    assert not cname_matches([], "domains.platform.io")
    assert not cname_matches(["evildomains.platform.io"], "domains.platform.io")
    assert not cname_matches(["platform.io"], "domains.platform.io")


def test_normalize_target():
    assert normalize_target(" Domains.Platform.io. ") == "domains.platform.io"

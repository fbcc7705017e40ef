import ipaddress

import pytest

from app.core import url_validation
from app.core.url_validation import safe_url, validate_webhook_url


def test_accepts_public_ip_literal():
    assert validate_webhook_url("HTTPS://93.184.216.34/hook?x=1") == "https://93.184.216.34/hook?x=1"


def test_rejects_fragment():
    with pytest.raises(ValueError, match="fragment"):
        validate_webhook_url("https://93.184.216.34/hook#x")


def test_rejects_empty():
    with pytest.raises(ValueError, match="required"):
        validate_webhook_url("   ")


def test_allow_insecure_skips_address_checks():
    assert validate_webhook_url("http://localhost:8080/hook", allow_insecure=True) == "http://localhost:8080/hook"


def test_rejects_hostname_resolving_to_private(monkeypatch):
    monkeypatch.setattr(
        url_validation,
        "_resolve_host",
        lambda host, port: {ipaddress.ip_address("93.184.216.34"), ipaddress.ip_address("10.1.2.3")},
    )
    with pytest.raises(ValueError, match="not allowed"):
        validate_webhook_url("https://mixed.example.com/hook")


def test_safe_url_strips_query_and_credentials():
    assert safe_url("https://user:pw@hooks.example.com:8443/a?token=x") == "https://hooks.example.com:8443/a"
    assert safe_url(None) == ""

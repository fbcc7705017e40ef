"""Outbound webhook target checks (SSRF) and log-safe URL rendering."""

from __future__ import annotations

import ipaddress
import socket
from urllib.parse import SplitResult, urlsplit, urlunsplit

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


def _resolve_host(host: str, port: int) -> set[IPAddress]:
    """Every address the resolver returns for host; ValueError if DNS fails."""
    try:
        results = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    except OSError as exc:
        raise ValueError("Webhook URL host could not be resolved") from exc

    addresses: set[IPAddress] = set()
    for *_, sockaddr in results:
        if sockaddr:
            try:
                addresses.add(ipaddress.ip_address(sockaddr[0]))
            except ValueError:
                pass
    return addresses


def _target_addresses(parts: SplitResult, host: str) -> set[IPAddress]:
    try:
        return {ipaddress.ip_address(host)}
    except ValueError:
        return _resolve_host(host, parts.port or 443)


def validate_webhook_url(url: str, *, allow_insecure: bool = False) -> str:
    """
    Normalize a webhook URL or raise ValueError.

    The URL must be https, carry a host, and have no userinfo or fragment.
    Every address the host resolves to must be globally routable. With
    allow_insecure (local development) http is accepted and no address
    checks run.
    """
    raw = (url or "").strip()
    if not raw:
        raise ValueError("Webhook URL is required")

    parts = urlsplit(raw)
    scheme = parts.scheme.lower()
    if scheme != "https" and not (allow_insecure and scheme == "http"):
        raise ValueError("Webhook URL must start with https://")
    if parts.username or parts.password:
        raise ValueError("Webhook URL must not include credentials")
    host = (parts.hostname or "").strip().lower().rstrip(".")
    if not host:
        raise ValueError("Webhook URL must include a host")
    if parts.fragment:
        raise ValueError("Webhook URL must not include a fragment")

    normalized = urlunsplit((scheme, parts.netloc, parts.path, parts.query, ""))
    if allow_insecure:
        return normalized

    addresses = _target_addresses(parts, host)
    if not addresses:
        raise ValueError("Webhook URL host could not be resolved")
    if not all(address.is_global for address in addresses):
        raise ValueError("Webhook URL host is not allowed")
    return normalized


def safe_url(url: str | None) -> str:
    """scheme://host[:port]/path, without credentials or query."""
    if not url:
        return ""
    parts = urlsplit(url)
    netloc = parts.hostname or ""
    if parts.port:
        netloc += f":{parts.port}"
    return f"{parts.scheme}://{netloc}{parts.path}"

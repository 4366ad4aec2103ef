"""Source URL validation and SSRF protection.

The host allow-list alone is not enough: DNS answers are live input, so the
hostname is resolved on every call and each address is checked against the
private, loopback and link-local ranges before git is allowed to connect.
"""

from __future__ import annotations

import asyncio
import ipaddress
import socket
from typing import Awaitable, Callable, Iterable
from urllib.parse import urlsplit

from ..errors import GitSyncError, SyncErrorCode

Resolver = Callable[[str], Awaitable[list[str]]]

ALLOWED_SCHEME = "https"
DEFAULT_PORT = 443

PRIVATE_NETWORKS = tuple(
    ipaddress.ip_network(n)
    for n in (
        # IPv4
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "127.0.0.0/8",
        "169.254.0.0/16",  # link-local
        "0.0.0.0/8",
        # IPv6
        "::1/128",
        "::/128",
        "fc00::/7",  # fc/fd unique-local
        "fe80::/10",  # link-local
    )
)


def is_private_address(address: str) -> bool:
    """True if ``address`` falls in a range git must never be pointed at."""
    # Strip an IPv6 zone index ("fe80::1%eth0").
    ip = ipaddress.ip_address(address.split("%", 1)[0])
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return any(ip.version == net.version and ip in net for net in PRIVATE_NETWORKS)


async def resolve_host(host: str) -> list[str]:
    """Resolve every address for ``host`` using the event loop's resolver."""
    loop = asyncio.get_event_loop()
    infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
    addresses: list[str] = []
    for _family, _type, _proto, _canon, sockaddr in infos:
        addr = str(sockaddr[0])
        if addr not in addresses:
            addresses.append(addr)
    return addresses


async def validate_git_url(
    url: str,
    *,
    allowed_hosts: Iterable[str] = ("github.com",),
    resolver: Resolver | None = None,
) -> None:
    """
    Validate a git source URL before anything is cloned.

    Args:
        url: Candidate clone URL
        allowed_hosts: Exact hostnames permitted as git sources
        resolver: Async ``host -> [address]`` lookup (defaults to getaddrinfo)

    Raises:
        GitSyncError: INVALID_URL, INVALID_PROTOCOL, INVALID_PORT,
            HOST_NOT_ALLOWED, SSRF_BLOCKED or DNS_RESOLUTION_FAILED
    """
    # urlsplit strips surrounding whitespace; git would not.
    if not isinstance(url, str) or url != url.strip():
        raise GitSyncError(SyncErrorCode.INVALID_URL, f"Invalid URL: {url!r}")
    try:
        parsed = urlsplit(url)
        port = parsed.port
        hostname = parsed.hostname
    except (ValueError, TypeError, AttributeError):
        raise GitSyncError(SyncErrorCode.INVALID_URL, f"Invalid URL: {url}")
    if not parsed.scheme or not parsed.netloc or not hostname:
        raise GitSyncError(SyncErrorCode.INVALID_URL, f"Invalid URL: {url}")

    scheme = parsed.scheme.lower()
    if scheme != ALLOWED_SCHEME:
        raise GitSyncError(
            SyncErrorCode.INVALID_PROTOCOL,
            f"Only HTTPS URLs are allowed, got: {scheme}:",
        )

    if port is not None and port != DEFAULT_PORT:
        raise GitSyncError(SyncErrorCode.INVALID_PORT, f"Non-standard port not allowed: {port}")

    hosts = [h.lower() for h in allowed_hosts]
    if hostname not in hosts:
        raise GitSyncError(
            SyncErrorCode.HOST_NOT_ALLOWED,
            f"Host not allowed: {hostname}. Allowed hosts: {', '.join(hosts)}",
        )

    if parsed.username is not None or parsed.password is not None:
        raise GitSyncError(SyncErrorCode.INVALID_URL, "URLs with credentials are not allowed")

    resolver = resolver or resolve_host
    try:
        addresses = await resolver(hostname)
    except (OSError, UnicodeError) as e:
        raise GitSyncError(
            SyncErrorCode.DNS_RESOLUTION_FAILED,
            f"Failed to resolve hostname: {hostname} ({e})",
        )
    if not addresses:
        raise GitSyncError(
            SyncErrorCode.DNS_RESOLUTION_FAILED,
            f"Failed to resolve hostname: {hostname} (no addresses)",
        )

    for address in addresses:
        try:
            private = is_private_address(address)
        except ValueError:
            raise GitSyncError(
                SyncErrorCode.DNS_RESOLUTION_FAILED,
                f"Resolver returned an invalid address for {hostname}: {address}",
            )
        if private:
            raise GitSyncError(SyncErrorCode.SSRF_BLOCKED, f"DNS resolved to private IP: {address}")

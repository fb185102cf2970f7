"""
Target URL validation.

This is the gateway's SSRF boundary: targets on loopback, link-local or
private address space, bare intranet hostnames and non-standard ports are
refused before any outbound call is made.

Checks run on the hostname exactly as supplied. No DNS resolution happens,
so a public name that resolves into private space (or a DNS rebinding
attack) is not caught here.
"""

import ipaddress
import re
import socket
from typing import Optional, Union
from urllib.parse import urlsplit

from ..models.forwarding import TargetRejection, TargetVerdict

ALLOWED_SCHEMES = frozenset({"http", "https"})
ALLOWED_PORTS = frozenset({80, 443, 8080, 8443})

LOCAL_HOSTNAMES = frozenset({"localhost", "127.0.0.1", "0.0.0.0", "::1"})

PRIVATE_HOST_PREFIXES = (
    "192.168.",
    "10.",
    "169.254.",
) + tuple(f"172.{octet}." for octet in range(16, 32))

BLOCKED_NETWORKS = tuple(
    ipaddress.ip_network(cidr)
    for cidr in (
        "0.0.0.0/8",
        "10.0.0.0/8",
        "127.0.0.0/8",
        "169.254.0.0/16",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "::/128",
        "::1/128",
        "fc00::/7",
        "fe80::/10",
    )
)

# Forms the system resolver accepts as IPv4 without a lookup: 127.1, 0x7f.1, 2130706433
_NUMERIC_HOST = re.compile(r"^(0x[0-9a-f]+|[0-9]+)(\.(0x[0-9a-f]+|[0-9]+)){0,3}$")

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class TargetValidator:
    """Parses and vets candidate destination URLs."""

    def validate(self, raw_url: str) -> TargetVerdict:
        """
        Vet a target URL.

        Checks run in a fixed order (parse, scheme, host safety, port) and the
        first failing check decides the reported reason.

        Args:
            raw_url: Candidate absolute URL

        Returns:
            TargetVerdict, accepted only when every check passes
        """
        try:
            parts = urlsplit((raw_url or "").strip())
            port = parts.port
        except ValueError:
            return TargetVerdict(accepted=False, reason=TargetRejection.BAD_URL)

        scheme = parts.scheme.lower()
        if not scheme:
            return TargetVerdict(accepted=False, reason=TargetRejection.BAD_URL)

        if scheme not in ALLOWED_SCHEMES:
            return TargetVerdict(accepted=False, reason=TargetRejection.UNSUPPORTED_SCHEME, scheme=scheme)

        hostname = (parts.hostname or "").rstrip(".")
        if not hostname:
            return TargetVerdict(accepted=False, reason=TargetRejection.BAD_URL, scheme=scheme)

        if is_private_or_local(hostname):
            return TargetVerdict(
                accepted=False,
                reason=TargetRejection.PRIVATE_OR_LOCAL_HOST,
                scheme=scheme,
                hostname=hostname,
            )

        if port is not None and port not in ALLOWED_PORTS:
            return TargetVerdict(
                accepted=False,
                reason=TargetRejection.DISALLOWED_PORT,
                scheme=scheme,
                hostname=hostname,
                port=port,
            )

        return TargetVerdict(accepted=True, scheme=scheme, hostname=hostname, port=port)


def is_private_or_local(hostname: str) -> bool:
    """
    Check whether a hostname points at loopback, private or intranet space.

    IP literals are tested against CIDR blocks. Anything else falls back to
    string rules on the name itself.
    """
    hostname = hostname.lower().rstrip(".")
    if hostname in LOCAL_HOSTNAMES:
        return True

    address = parse_ip_literal(hostname)
    if address is not None:
        return _is_blocked_address(address)

    return (
        hostname.startswith(PRIVATE_HOST_PREFIXES)
        or ".local" in hostname
        or "." not in hostname
    )


def base_url(target_url: str) -> str:
    """Return scheme://host of a target, bracketing IPv6 literals."""
    parts = urlsplit(target_url)
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    return f"{parts.scheme}://{host}"


def parse_ip_literal(hostname: str) -> Optional[IPAddress]:
    """Interpret a hostname as an IP address the way a resolver would, if it is one."""
    try:
        return ipaddress.ip_address(hostname)
    except ValueError:
        pass

    if _NUMERIC_HOST.match(hostname):
        try:
            return ipaddress.IPv4Address(socket.inet_aton(hostname))
        except OSError:
            return None
    return None


def _is_blocked_address(address: IPAddress) -> bool:
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        address = address.ipv4_mapped
    return any(address in network for network in BLOCKED_NETWORKS if network.version == address.version)

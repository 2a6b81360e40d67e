"""Network containment checks used by ``cidr`` targeting rules."""

from __future__ import annotations

import ipaddress
from functools import lru_cache
from typing import Iterable, Union

from targeting.exceptions import MalformedNetworkError

IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]
IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


@lru_cache(maxsize=1024)
def parse_network(value: str) -> IPNetwork:
    """Parse a network prefix such as ``10.0.0.0/8`` or ``2001:db8::/32``.

    Host bits are tolerated (``10.1.2.3/8`` is read as ``10.0.0.0/8``) and a
    bare address is read as a single-host network.
    """

    if not isinstance(value, str) or not value.strip():
        raise MalformedNetworkError(value, "expected a non-empty string")
    try:
        return ipaddress.ip_network(value.strip(), strict=False)
    except ValueError as exc:
        raise MalformedNetworkError(value, str(exc)) from exc


@lru_cache(maxsize=4096)
def parse_address(value: str) -> IPAddress:
    """Parse a viewer address, unwrapping IPv4-mapped IPv6 addresses."""

    if not isinstance(value, str) or not value.strip():
        raise MalformedNetworkError(value, "expected a non-empty string")
    try:
        address = ipaddress.ip_address(value.strip())
    except ValueError as exc:
        raise MalformedNetworkError(value, str(exc)) from exc
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return address.ipv4_mapped
    return address


def network_contains(prefix: str, address: str) -> bool:
    """Return True when *address* falls inside the *prefix* network.

    Addresses of a different family than the prefix never match.
    """

    network = parse_network(prefix)
    candidate = parse_address(address)
    if network.version != candidate.version:
        return False
    return candidate in network


def matches_any(prefixes: Iterable[str], address: str) -> bool:
    """Return True when *address* is contained in at least one of *prefixes*."""

    candidate = parse_address(address)
    for prefix in prefixes:
        network = parse_network(prefix)
        if network.version == candidate.version and candidate in network:
            return True
    return False


__all__ = [
    "IPAddress",
    "IPNetwork",
    "parse_network",
    "parse_address",
    "network_contains",
    "matches_any",
]

"""Address helpers: host/port splitting, random names and local interface lookups."""

from __future__ import annotations

import hashlib
import ipaddress
import random
import re
import socket
import string

import psutil

_CHARSET = string.ascii_lowercase + string.ascii_uppercase + string.digits
_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1


def _atoi(text: str) -> int:
    if not _INT_RE.fullmatch(text):
        return 0
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        return 0
    return value


def split_addr(addr: str) -> tuple[str, int]:
    """Split ``host:port`` on colons; a port that is not a number becomes 0."""
    parts = addr.split(":")
    if len(parts) < 2:
        raise ValueError(f"missing port in address {addr!r}")
    return parts[0], _atoi(parts[1])


def random_string(length: int) -> str:
    """Return ``length`` random letters and digits."""
    if length < 0:
        raise ValueError(f"negative length: {length}")
    return "".join(random.choices(_CHARSET, k=length))


def rand_port() -> int:
    """Return a random port in the range 20000 to 29999."""
    return random.randrange(20000, 30000)


def join_host_port(ip: str, port: int) -> str:
    return f"{ip}:{port}"


def _ipv4_addresses():
    for addresses in psutil.net_if_addrs().values():
        for entry in addresses:
            if entry.family != socket.AF_INET:
                continue
            try:
                ip = ipaddress.IPv4Address(entry.address)
            except ValueError:
                continue
            yield ip, entry.netmask


def get_local_addr() -> str:
    """Return the first non-loopback IPv4 address, or ``127.0.0.1`` if there is none."""
    for ip, _ in _ipv4_addresses():
        if not ip.is_loopback:
            return str(ip)
    return "127.0.0.1"


def _normalize_mac(address: str) -> str:
    return address.replace("-", ":").lower()


def _machine_mac_address() -> str:
    link_family = getattr(psutil, "AF_LINK", None)
    for addresses in psutil.net_if_addrs().values():
        for entry in addresses:
            if entry.family != link_family or not entry.address:
                continue
            mac = _normalize_mac(entry.address)
            if mac.replace(":", "").strip("0"):
                return mac
    raise LookupError("no valid MAC address found")


def generate_machine_hash() -> str:
    """SHA-256 hex of the first hardware address, or a random 32-character string."""
    try:
        mac = _machine_mac_address()
    except LookupError:
        return random_string(32)
    return hashlib.sha256(mac.encode("ascii")).hexdigest()


def _prefix_length(netmask: str | None) -> int:
    if not netmask:
        return 32
    try:
        return ipaddress.IPv4Network(f"0.0.0.0/{netmask}").prefixlen
    except ValueError:
        return 32


def get_local_subnet() -> list[str]:
    """Return ``ip/prefix`` for each non-loopback, non-link-local IPv4 address."""
    subnets = []
    for ip, netmask in _ipv4_addresses():
        if ip.is_loopback or ip.packed[0] == 169:
            continue
        subnets.append(f"{ip}/{_prefix_length(netmask)}")
    return subnets
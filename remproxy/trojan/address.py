"""Trojan/SOCKS style addresses: type byte, IP or domain name, and port."""

from __future__ import annotations

import enum
import ipaddress
import socket
from dataclasses import dataclass
from typing import Any, Optional, Union

from remproxy.trojan.protocol import ProtocolError

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

MAX_PACKET_SIZE = 1024 * 8


class AddressType(enum.IntEnum):
    IPV4 = 1
    DOMAIN_NAME = 3
    IPV6 = 4


def _read_some(reader: Any, size: int) -> bytes:
    if isinstance(reader, socket.socket):
        return reader.recv(size)
    return reader.read(size)


def _read_exact(reader: Any, size: int) -> bytes:
    buf = bytearray()
    while len(buf) < size:
        chunk = _read_some(reader, size - len(buf))
        if not chunk:
            raise EOFError(f"unexpected EOF: wanted {size} bytes, got {len(buf)}")
        buf += chunk
    return bytes(buf)


def _normalize(ip: IPAddress) -> IPAddress:
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


def _parse_ip(text: str) -> Optional[IPAddress]:
    try:
        return ipaddress.ip_address(text)
    except ValueError:
        return None


def _split_host_port(address: str) -> tuple[str, str]:
    if address.startswith("["):
        end = address.find("]")
        if end < 0:
            raise ValueError(f"address {address}: missing ']' in address")
        rest = address[end + 1 :]
        if not rest.startswith(":"):
            raise ValueError(f"address {address}: missing port in address")
        return address[1:end], rest[1:]
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"address {address}: missing port in address")
    return host, port


@dataclass
class Address:
    """A destination address with its wire type and the network it belongs to."""

    address_type: int
    port: int = 0
    ip: Optional[IPAddress] = None
    domain_name: str = ""
    network_type: str = ""

    def __str__(self) -> str:
        if self.address_type == AddressType.IPV4:
            return f"{self.ip}:{self.port}"
        if self.address_type == AddressType.IPV6:
            return f"[{self.ip}]:{self.port}"
        if self.address_type == AddressType.DOMAIN_NAME:
            return f"{self.domain_name}:{self.port}"
        return "INVALID_ADDRESS_TYPE"

    def network(self) -> str:
        return self.network_type

    def resolve_ip(self) -> IPAddress:
        """Return the IP, resolving and caching it for a domain name."""
        if self.ip is not None:
            return self.ip
        if self.address_type in (AddressType.IPV4, AddressType.IPV6):
            raise ProtocolError("address has no IP")
        infos = socket.getaddrinfo(self.domain_name, None, type=socket.SOCK_DGRAM)
        found = [ipaddress.ip_address(info[4][0].split("%", 1)[0]) for info in infos]
        if not found:
            raise OSError(f"no address found for {self.domain_name!r}")
        self.ip = next((ip for ip in found if ip.version == 4), found[0])
        return self.ip

    def to_bytes(self) -> bytes:
        """Encode as type byte, address body and big-endian port."""
        atyp = self.address_type
        if atyp == AddressType.DOMAIN_NAME:
            name = self.domain_name.encode("utf-8", "surrogateescape")
            body = bytes((len(name) & 0xFF,)) + name
        elif atyp == AddressType.IPV4:
            if self.ip is None:
                raise ProtocolError("missing IPv4 address")
            ip = _normalize(self.ip)
            if ip.version != 4:
                raise ProtocolError(f"not an IPv4 address: {ip}")
            body = ip.packed
        elif atyp == AddressType.IPV6:
            if self.ip is None:
                raise ProtocolError("missing IPv6 address")
            ip = self.ip
            if ip.version == 4:
                ip = ipaddress.IPv6Address(b"\x00" * 10 + b"\xff\xff" + ip.packed)
            body = ip.packed
        else:
            raise ProtocolError(f"invalid ATYP {int(atyp)}")
        return bytes((int(atyp),)) + body + (self.port & 0xFFFF).to_bytes(2, "big")

    def write_to(self, writer: Any) -> None:
        data = self.to_bytes()
        if isinstance(writer, socket.socket):
            writer.sendall(data)
        else:
            writer.write(data)


def read_address(reader: Any, network: str = "") -> Address:
    """Read an encoded address; a domain name holding an IP becomes an IP address."""
    try:
        (atyp,) = _read_exact(reader, 1)
    except (EOFError, OSError) as exc:
        raise ProtocolError("unable to read ATYP") from exc

    if atyp == AddressType.IPV4:
        try:
            buf = _read_exact(reader, 6)
        except (EOFError, OSError) as exc:
            raise ProtocolError("failed to read IPv4") from exc
        return Address(
            AddressType.IPV4,
            port=int.from_bytes(buf[4:6], "big"),
            ip=ipaddress.IPv4Address(buf[:4]),
            network_type=network,
        )

    if atyp == AddressType.IPV6:
        try:
            buf = _read_exact(reader, 18)
        except (EOFError, OSError) as exc:
            raise ProtocolError("failed to read IPv6") from exc
        return Address(
            AddressType.IPV6,
            port=int.from_bytes(buf[16:18], "big"),
            ip=ipaddress.IPv6Address(buf[:16]),
            network_type=network,
        )

    if atyp == AddressType.DOMAIN_NAME:
        try:
            (length,) = _read_exact(reader, 1)
        except (EOFError, OSError) as exc:
            raise ProtocolError("failed to read domain name length") from exc
        try:
            buf = _read_exact(reader, length + 2)
        except (EOFError, OSError) as exc:
            raise ProtocolError("failed to read domain name") from exc
        host = buf[:length].decode("utf-8", "surrogateescape")
        port = int.from_bytes(buf[length:], "big")
        ip = _parse_ip(host)
        if ip is not None:
            kind = AddressType.IPV4 if _normalize(ip).version == 4 else AddressType.IPV6
            return Address(kind, port=port, ip=ip, network_type=network)
        return Address(
            AddressType.DOMAIN_NAME, port=port, domain_name=host, network_type=network
        )

    raise ProtocolError(f"invalid ATYP {atyp}")


def new_address_from_host_port(network: str, host: str, port: int) -> Address:
    """Build an address, classifying ``host`` as IPv4, IPv6 or a domain name."""
    ip = _parse_ip(host)
    if ip is not None:
        ip = _normalize(ip)
        kind = AddressType.IPV4 if ip.version == 4 else AddressType.IPV6
        return Address(kind, port=port, ip=ip, network_type=network)
    return Address(AddressType.DOMAIN_NAME, port=port, domain_name=host, network_type=network)


def new_address_from_addr(network: str, addr: str) -> Address:
    """Build an address from a ``host:port`` string."""
    host, port_text = _split_host_port(addr)
    return new_address_from_host_port(network, host, int(port_text, 10))
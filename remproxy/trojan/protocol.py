"""Trojan handshake: the password token and the request header that follows it."""

from __future__ import annotations

import ipaddress
import socket
from dataclasses import dataclass
from typing import Any

LEN_TOKEN = 56
LEN_CRLF = 2
LEN_COMMAND = 1
LEN_ADDRESS_TYPE = 1
LEN_IPV4 = 4
LEN_DOMAIN = 1
LEN_IPV6 = 16
LEN_PORT = 2

COMMAND_CONNECT = 0x01
COMMAND_UDP = 0x03

ADDRESS_TYPE_IPV4 = 0x01
ADDRESS_TYPE_DOMAIN = 0x03
ADDRESS_TYPE_IPV6 = 0x04

CRLF = b"\r\n"

DEFAULT_BUFFER_SIZE = 4096


class ProtocolError(Exception):
    """The peer sent bytes that do not follow the trojan wire format."""


@dataclass
class Request:
    """A parsed trojan request: command, address type and destination."""

    command: int
    address_type: int
    description_address: str
    description_port: int


def _read_some(conn: Any, size: int) -> bytes:
    if isinstance(conn, socket.socket):
        return conn.recv(size)
    return conn.read(size)


def _read_exact(conn: Any, size: int) -> bytes:
    buf = bytearray()
    while len(buf) < size:
        chunk = _read_some(conn, size - len(buf))
        if not chunk:
            raise EOFError(f"unexpected EOF: wanted {size} bytes, got {len(buf)}")
        buf += chunk
    return bytes(buf)


def _ip_text(raw: bytes) -> str:
    ip = ipaddress.ip_address(raw)
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return str(ip)


def get_token(conn: Any) -> str:
    """Read the 56-byte hex token with a single read; a short read is an error."""
    data = _read_some(conn, LEN_TOKEN)
    if len(data) != LEN_TOKEN:
        raise ProtocolError("token length error")
    return data.decode("latin-1")


def parse_request(conn: Any) -> Request:
    """Read CRLF, command, address, port and the closing CRLF."""
    if _read_exact(conn, LEN_CRLF) != CRLF:
        raise ProtocolError("not is crlf data")
    (command,) = _read_exact(conn, LEN_COMMAND)
    (address_type,) = _read_exact(conn, LEN_ADDRESS_TYPE)

    if address_type == ADDRESS_TYPE_IPV4:
        address = _ip_text(_read_exact(conn, LEN_IPV4))
    elif address_type == ADDRESS_TYPE_DOMAIN:
        (length,) = _read_exact(conn, LEN_DOMAIN)
        address = _read_exact(conn, length).decode("utf-8", "surrogateescape")
    elif address_type == ADDRESS_TYPE_IPV6:
        address = _ip_text(_read_exact(conn, LEN_IPV6))
    else:
        raise ProtocolError(f"unsupported address type {address_type}")

    port = int.from_bytes(_read_exact(conn, LEN_PORT), "big")
    if _read_exact(conn, LEN_CRLF) != CRLF:
        raise ProtocolError("not is crlf data")
    return Request(command, address_type, address, port)
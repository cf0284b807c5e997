"""Packet connections used by the trojan UDP relay."""

from __future__ import annotations

import socket
from dataclasses import dataclass
from typing import Any, Union

from remproxy.trojan.address import (
    MAX_PACKET_SIZE,
    Address,
    new_address_from_host_port,
    read_address,
)
from remproxy.trojan.protocol import CRLF, ProtocolError


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


def _discard(conn: Any, size: int) -> None:
    remaining = size
    while remaining > 0:
        try:
            chunk = _read_some(conn, min(remaining, MAX_PACKET_SIZE))
        except OSError:
            return
        if not chunk:
            return
        remaining -= len(chunk)


@dataclass
class TrojanConn:
    """UDP packets framed inside a trojan stream: address, length, CRLF, payload."""

    conn: Any

    def write_with_metadata(self, payload: bytes, addr: Address) -> int:
        packet = (
            addr.to_bytes()
            + (len(payload) & 0xFFFF).to_bytes(2, "big")
            + CRLF
            + bytes(payload)
        )
        if isinstance(self.conn, socket.socket):
            self.conn.sendall(packet)
        else:
            self.conn.write(packet)
        return len(payload)

    def read_with_metadata(self, size: int = MAX_PACKET_SIZE) -> tuple[bytes, Address]:
        """Read one framed packet no longer than ``size`` bytes."""
        try:
            addr = read_address(self.conn, "udp")
        except (ProtocolError, EOFError, OSError) as exc:
            raise ProtocolError("failed to parse udp packet addr") from exc
        try:
            length = int.from_bytes(_read_exact(self.conn, 2), "big")
        except (EOFError, OSError) as exc:
            raise ProtocolError("failed to read length") from exc
        try:
            _read_exact(self.conn, 2)
        except (EOFError, OSError) as exc:
            raise ProtocolError("failed to read crlf") from exc

        if size < length or length > MAX_PACKET_SIZE:
            _discard(self.conn, length)
            raise ProtocolError("incoming packet size is too large")

        try:
            payload = _read_exact(self.conn, length)
        except (EOFError, OSError) as exc:
            raise ProtocolError("failed to read payload") from exc
        return payload, addr

    def close(self) -> None:
        self.conn.close()


@dataclass
class UDPConn:
    """A datagram socket that reports peers as addresses."""

    sock: socket.socket

    def write_with_metadata(self, payload: bytes, addr: Address) -> int:
        return self.write_to(payload, addr)

    def read_with_metadata(self, size: int = MAX_PACKET_SIZE) -> tuple[bytes, Address]:
        data, peer = self.sock.recvfrom(size)
        host = peer[0].split("%", 1)[0]
        return data, new_address_from_host_port("udp", host, peer[1])

    def write_to(self, payload: bytes, addr: Union[Address, tuple]) -> int:
        """Send to a socket address tuple, or to an address after resolving it."""
        if isinstance(addr, tuple):
            return self.sock.sendto(payload, addr)
        ip = addr.resolve_ip()
        return self.sock.sendto(payload, (str(ip), addr.port))

    def close(self) -> None:
        self.sock.close()
"""One-way byte copying between connections."""

from __future__ import annotations

import socket
from typing import Any

from remproxy.trojan.protocol import DEFAULT_BUFFER_SIZE


def _read(src: Any, size: int) -> bytes:
    if isinstance(src, socket.socket):
        return src.recv(size)
    return src.read(size)


def _write(dst: Any, data: bytes) -> None:
    if isinstance(dst, socket.socket):
        dst.sendall(data)
    else:
        dst.write(data)


def copy(dst: Any, src: Any) -> int:
    """Copy ``src`` into ``dst`` until end of input, then close ``dst``.

    Returns the number of bytes written. A write that hits end of file ends
    the copy quietly; other errors propagate.
    """
    written = 0
    try:
        while True:
            data = _read(src, DEFAULT_BUFFER_SIZE)
            if not data:
                return written
            try:
                _write(dst, data)
            except EOFError:
                return written
            written += len(data)
    finally:
        dst.close()
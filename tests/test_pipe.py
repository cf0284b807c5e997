import io
import socket

import pytest

from remproxy.trojan.pipe import copy


class _Sink:
    def __init__(self, fail_on=None, error=None):
        self.chunks = []
        self.closed = False
        self.fail_on = fail_on
        self.error = error

    def write(self, data):
        if self.fail_on is not None and len(self.chunks) == self.fail_on:
            raise self.error
        self.chunks.append(bytes(data))
        return len(data)

    def close(self):
        self.closed = True


def test_copy_all_bytes_and_close():
    data = bytes(range(256)) * 40
    sink = _Sink()
    assert copy(sink, io.BytesIO(data)) == len(data)
    assert b"".join(sink.chunks) == data
    assert sink.closed is True


def test_copy_empty_source():
    sink = _Sink()
    assert copy(sink, io.BytesIO(b"")) == 0
    assert sink.chunks == []
    assert sink.closed is True


def test_write_error_propagates_and_closes():
    sink = _Sink(fail_on=0, error=BrokenPipeError("gone"))
    with pytest.raises(BrokenPipeError):
        copy(sink, io.BytesIO(b"data"))
    assert sink.closed is True


def test_write_eof_ends_quietly():
    data = b"z" * 10000
    sink = _Sink(fail_on=1, error=EOFError())
    written = copy(sink, io.BytesIO(data))
    assert written == len(sink.chunks[0])
    assert written < len(data)
    assert sink.closed is True


def test_copy_between_sockets():
    src_w, src_r = socket.socketpair()
    dst_w, dst_r = socket.socketpair()
    with src_w, src_r, dst_w, dst_r:
        src_r.settimeout(5)
        dst_r.settimeout(5)
        payload = b"ping" * 3000
        src_w.sendall(payload)
        src_w.shutdown(socket.SHUT_WR)
        assert copy(dst_w, src_r) == len(payload)
        received = bytearray()
        while True:
            chunk = dst_r.recv(65536)
            if not chunk:
                break
            received += chunk
        assert bytes(received) == payload
import socket
import threading

import pytest

from remproxy.trojan.protocol import (
    ADDRESS_TYPE_DOMAIN,
    ADDRESS_TYPE_IPV4,
    ADDRESS_TYPE_IPV6,
    COMMAND_CONNECT,
    ProtocolError,
    Request,
)
from remproxy.trojan.server import (
    ReverseProxyConfig,
    Server,
    TrojanConfig,
    sha224,
)

PASSWORD = "password"


def _recv_exact(sock, size, timeout=5.0):
    sock.settimeout(timeout)
    buf = b""
    while len(buf) < size:
        chunk = sock.recv(size - len(buf))
        if not chunk:
            break
        buf += chunk
    return buf


def _token(word=PASSWORD):
    return sha224(word).encode("ascii")


def _ipv4_request(ip_bytes, port, command=COMMAND_CONNECT):
    return (
        b"\r\n"
        + bytes((command, ADDRESS_TYPE_IPV4))
        + ip_bytes
        + port.to_bytes(2, "big")
        + b"\r\n"
    )


def _domain_request(name, port, command=COMMAND_CONNECT):
    raw = name.encode()
    return (
        b"\r\n"
        + bytes((command, ADDRESS_TYPE_DOMAIN, len(raw)))
        + raw
        + port.to_bytes(2, "big")
        + b"\r\n"
    )


def _make_server(**kwargs):
    password = PASSWORD
    config = kwargs.pop("config", None) or TrojanConfig(password=password)
    return Server(config=config, **kwargs)


def test_sha224_known_vector():
    assert sha224("abc") == "23097d223405d8228642a477bda255b32aadbce4bda0b3f7e36c9da7"
    assert len(sha224(PASSWORD)) == 56


def test_default_authentication_handler():
    server = _make_server()
    assert server.default_authentication_handler(sha224(PASSWORD), PASSWORD) is True
    assert server.default_authentication_handler(sha224("other"), PASSWORD) is False
    assert server.default_authentication_handler(PASSWORD, PASSWORD) is False


def test_default_connect_handler_allows():
    assert _make_server().default_connect_handler() is True


@pytest.mark.parametrize(
    "address, atyp, expected",
    [
        ("127.0.0.1", ADDRESS_TYPE_IPV4, False),
        ("10.1.2.3", ADDRESS_TYPE_IPV4, False),
        ("192.168.1.1", ADDRESS_TYPE_IPV4, False),
        ("169.254.1.1", ADDRESS_TYPE_IPV4, False),
        ("8.8.8.8", ADDRESS_TYPE_IPV4, True),
        ("::1", ADDRESS_TYPE_IPV6, False),
        ("fe80::1", ADDRESS_TYPE_IPV6, False),
        ("2001:4860:4860::8888", ADDRESS_TYPE_IPV6, True),
        ("localhost", ADDRESS_TYPE_DOMAIN, False),
    ],
)
def test_default_request_handler(address, atyp, expected):
    server = _make_server()
    request = Request(COMMAND_CONNECT, atyp, address, 80)
    assert server.default_request_handler(request) is expected


def test_parse_request_success():
    server = _make_server()
    client, conn = socket.socketpair()
    with client, conn:
        client.sendall(_token() + _ipv4_request(bytes((127, 0, 0, 1)), 8080))
        request = server.parse_request(conn)
    assert request == Request(COMMAND_CONNECT, ADDRESS_TYPE_IPV4, "127.0.0.1", 8080)


def test_parse_request_bad_token():
    server = _make_server()
    client, conn = socket.socketpair()
    with client, conn:
        client.sendall(_token("other") + _ipv4_request(bytes((127, 0, 0, 1)), 8080))
        with pytest.raises(ProtocolError, match="authentication failed"):
            server.parse_request(conn)


def test_parse_request_connect_handler_refuses():
    server = _make_server(connect_handler=lambda: False)
    client, conn = socket.socketpair()
    with client, conn:
        with pytest.raises(ProtocolError, match="connect handler failed"):
            server.parse_request(conn)


def test_serve_conn_bad_request_reports_error():
    errors = []
    server = _make_server(error_handler=errors.append)
    client, conn = socket.socketpair()
    with client:
        client.sendall(_token() + b"XX")
        server.serve_conn(conn)
    assert len(errors) == 1
    assert isinstance(errors[0], ProtocolError)
    assert str(errors[0]) == "not is crlf data"


def test_serve_conn_bad_token_without_fallback_closes():
    server = _make_server()
    client, conn = socket.socketpair()
    with client:
        client.sendall(_token("other"))
        server.serve_conn(conn)
        client.settimeout(5)
        assert client.recv(1) == b""


def test_serve_conn_connect_relays_data():
    upstream = socket.create_server(("127.0.0.1", 0))
    port = upstream.getsockname()[1]

    def echo_once():
        peer, _ = upstream.accept()
        with peer:
            data = _recv_exact(peer, 4)
            peer.sendall(data)

    echo = threading.Thread(target=echo_once, daemon=True)
    echo.start()

    server = _make_server()
    client, conn = socket.socketpair()
    worker = threading.Thread(target=server.serve_conn, args=(conn,), daemon=True)
    worker.start()
    with client, upstream:
        client.sendall(_token() + _ipv4_request(bytes((127, 0, 0, 1)), port) + b"ping")
        assert _recv_exact(client, 4) == b"ping"
        echo.join(5)
        worker.join(5)
    assert not worker.is_alive()


def test_serve_conn_uses_custom_dial():
    calls = []
    upstream_server, upstream_peer = socket.socketpair()

    def dial(network, address):
        calls.append((network, address))
        return upstream_server

    server = _make_server(dial=dial)
    client, conn = socket.socketpair()
    worker = threading.Thread(target=server.serve_conn, args=(conn,), daemon=True)
    worker.start()
    with client, upstream_peer:
        client.sendall(_token() + _domain_request("example.com", 443) + b"hi")
        assert _recv_exact(upstream_peer, 2) == b"hi"
        upstream_peer.sendall(b"ok")
        upstream_peer.shutdown(socket.SHUT_WR)
        assert _recv_exact(client, 2) == b"ok"
        worker.join(5)
    assert calls == [("tcp", "example.com:443")]
    assert not worker.is_alive()


def test_serve_conn_bad_token_goes_to_reverse_proxy():
    fallback = socket.create_server(("127.0.0.1", 0))
    port = fallback.getsockname()[1]
    received = []

    def serve_fallback():
        peer, _ = fallback.accept()
        with peer:
            received.append(_recv_exact(peer, 56))
            peer.sendall(b"fallback")

    thread = threading.Thread(target=serve_fallback, daemon=True)
    thread.start()

    config = TrojanConfig(
        password=PASSWORD,
        reverse_proxy_config=ReverseProxyConfig(scheme="http", host="127.0.0.1", port=port),
    )
    server = _make_server(config=config)
    client, conn = socket.socketpair()
    worker = threading.Thread(target=server.serve_conn, args=(conn,), daemon=True)
    worker.start()
    bad_token = _token("other")
    with client, fallback:
        client.sendall(bad_token)
        assert _recv_exact(client, 8) == b"fallback"
        thread.join(5)
    assert received == [bad_token]


def test_listen_and_serve_requires_tls_config():
    server = _make_server()
    with pytest.raises(ValueError, match="TLSConfig is nil"):
        server.listen_and_serve("127.0.0.1", 0)
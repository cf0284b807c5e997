"""A trojan server: token check, request parsing, TCP/UDP relaying and fallback proxying."""

from __future__ import annotations

import hashlib
import ipaddress
import logging
import queue
import socket
import ssl
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from remproxy.trojan import pipe
from remproxy.trojan.address import MAX_PACKET_SIZE
from remproxy.trojan.protocol import (
    ADDRESS_TYPE_DOMAIN,
    COMMAND_CONNECT,
    COMMAND_UDP,
    ProtocolError,
    Request,
    get_token,
)
from remproxy.trojan.protocol import parse_request as _parse_trojan_request
from remproxy.trojan.tunnel import TrojanConn, UDPConn

ConnectHandler = Callable[[], bool]
AuthenticationHandler = Callable[[str, str], bool]
RequestHandler = Callable[[Request], bool]
ErrorHandler = Callable[[BaseException], None]
Dialer = Callable[[str, str], Any]

_PRIVATE_NETWORKS = tuple(
    ipaddress.ip_network(net) for net in ("10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16", "fc00::/7")
)
_LINK_LOCAL_UNICAST = tuple(ipaddress.ip_network(net) for net in ("169.254.0.0/16", "fe80::/10"))
_LINK_LOCAL_MULTICAST_V4 = ipaddress.ip_network("224.0.0.0/24")


@dataclass
class TLSConfig:
    """TLS settings: protocol version bounds and the certificate chain files."""

    min_version: int = 0
    max_version: int = 0
    certificate_file: str = ""
    key_file: str = ""


@dataclass
class CertificateFileConfig:
    public_key_file: str = ""
    private_key_file: str = ""


@dataclass
class ReverseProxyConfig:
    """Where connections that fail authentication are forwarded."""

    remote_url: str = ""
    scheme: str = ""
    host: str = ""
    port: int = 0


@dataclass
class TrojanConfig:
    password: str = ""
    tls_config: Optional[TLSConfig] = None
    reverse_proxy_config: Optional[ReverseProxyConfig] = None


def sha224(password: str) -> str:
    """Hex SHA-224 digest of ``password``, the form a trojan client sends."""
    return hashlib.sha224(password.encode("utf-8")).hexdigest()


def _join_host_port(host: str, port: int) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def _default_dial(network: str, address: str) -> socket.socket:
    host, _, port = address.rpartition(":")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return socket.create_connection((host, int(port)))


def _peer(conn: Any) -> Any:
    try:
        return conn.getpeername()
    except (AttributeError, OSError):
        return None


def _is_link_local_multicast(ip: ipaddress._BaseAddress) -> bool:
    if ip.version == 4:
        return ip in _LINK_LOCAL_MULTICAST_V4
    packed = ip.packed
    return packed[0] == 0xFF and packed[1] & 0x0F == 0x02


def _is_restricted(ip: ipaddress._BaseAddress) -> bool:
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return (
        ip.is_loopback
        or any(ip in net for net in _LINK_LOCAL_UNICAST if net.version == ip.version)
        or _is_link_local_multicast(ip)
        or any(ip in net for net in _PRIVATE_NETWORKS if net.version == ip.version)
    )


def _server_context(tls_config: TLSConfig) -> ssl.SSLContext:
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(tls_config.certificate_file, tls_config.key_file)
    return context


class Server:
    """Serves trojan connections, forwarding unauthenticated ones to a fallback."""

    def __init__(
        self,
        config: Optional[TrojanConfig] = None,
        logger: Optional[logging.Logger] = None,
        dial: Optional[Dialer] = None,
        connect_handler: Optional[ConnectHandler] = None,
        authentication_handler: Optional[AuthenticationHandler] = None,
        request_handler: Optional[RequestHandler] = None,
        error_handler: Optional[ErrorHandler] = None,
    ) -> None:
        self.config = config if config is not None else TrojanConfig()
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.dial = dial
        self.connect_handler = connect_handler or self.default_connect_handler
        self.authentication_handler = authentication_handler or self.default_authentication_handler
        self.request_handler = request_handler or self.default_request_handler
        self.error_handler = error_handler or self.default_error_handler

    def default_connect_handler(self) -> bool:
        return True

    def default_authentication_handler(self, req_hash: str, server_hash: str) -> bool:
        """Accept when the token equals the SHA-224 hex of the configured password."""
        return req_hash == sha224(server_hash)

    def default_request_handler(self, request: Request) -> bool:
        """Refuse loopback, link-local and private destinations."""
        if request.address_type == ADDRESS_TYPE_DOMAIN:
            try:
                infos = socket.getaddrinfo(request.description_address, None, type=socket.SOCK_STREAM)
            except OSError as exc:
                self.logger.error("%s", exc)
                return False
            addresses = [ipaddress.ip_address(info[4][0].split("%", 1)[0]) for info in infos]
            if not addresses:
                return False
            remote_ip = next((ip for ip in addresses if ip.version == 4), addresses[0])
        else:
            try:
                remote_ip = ipaddress.ip_address(request.description_address)
            except ValueError:
                return True
        return not _is_restricted(remote_ip)

    def default_error_handler(self, err: BaseException) -> None:
        self.logger.error("%s", err)

    def listen_and_serve(self, host: str, port: int) -> None:
        """Accept TLS connections on ``host:port`` and serve each on its own thread."""
        if self.config.tls_config is None:
            raise ValueError("TLSConfig is nil")
        context = _server_context(self.config.tls_config)
        with socket.create_server((host, port)) as listener:
            while True:
                try:
                    raw, _ = listener.accept()
                except OSError as exc:
                    if listener.fileno() == -1:
                        return
                    self.error_handler(exc)
                    continue
                threading.Thread(target=self._serve_tls, args=(raw, context), daemon=True).start()

    def _serve_tls(self, raw: socket.socket, context: ssl.SSLContext) -> None:
        try:
            conn = context.wrap_socket(raw, server_side=True)
        except (ssl.SSLError, OSError) as exc:
            raw.close()
            self.error_handler(exc)
            return
        self.serve_conn(conn)

    def parse_request(self, conn: Any) -> Request:
        """Check the connection, the token and read the request header."""
        if not self.connect_handler():
            raise ProtocolError("connect handler failed")
        try:
            token = get_token(conn)
        except (ProtocolError, EOFError, OSError) as exc:
            self.error_handler(exc)
            raise
        if not self.authentication_handler(token, self.config.password):
            raise ProtocolError("authentication failed")
        try:
            return _parse_trojan_request(conn)
        except (ProtocolError, EOFError, OSError, ValueError) as exc:
            self.error_handler(exc)
            raise

    def serve_conn(self, conn: Any) -> None:
        """Serve one connection and close it afterwards."""
        try:
            if not self.connect_handler():
                return
            try:
                token = get_token(conn)
            except (ProtocolError, EOFError, OSError) as exc:
                self.error_handler(exc)
                return
            if not self.authentication_handler(token, self.config.password):
                self.logger.debug("authentication not passed %s", _peer(conn))
                if self.config.reverse_proxy_config is None:
                    return
                self._relay_reverse_proxy(conn, token)
                return
            try:
                request = _parse_trojan_request(conn)
            except (ProtocolError, EOFError, OSError, ValueError) as exc:
                self.error_handler(exc)
                return
            self._handle(request, conn)
        finally:
            conn.close()

    def _relay_reverse_proxy(self, conn: Any, token: str) -> None:
        proxy = self.config.reverse_proxy_config
        try:
            dst = socket.create_connection((proxy.host, proxy.port))
        except OSError as exc:
            self.error_handler(exc)
            return
        self.logger.debug("reverse proxy policy %s %s", _peer(conn), dst.getsockname())
        with dst:
            try:
                dst.sendall(token.encode("latin-1"))
            except OSError as exc:
                self.error_handler(exc)
                return
            self._bridge(conn, dst)

    def _bridge(self, conn: Any, dst: Any) -> None:
        threading.Thread(target=self._quiet_copy, args=(dst, conn), daemon=True).start()
        self._quiet_copy(conn, dst)

    @staticmethod
    def _quiet_copy(dst: Any, src: Any) -> None:
        try:
            pipe.copy(dst, src)
        except OSError:
            pass

    def _handle(self, request: Request, conn: Any) -> None:
        if request.command == COMMAND_UDP:
            self._relay_packet_loop(conn)
        elif request.command == COMMAND_CONNECT:
            self._relay_conn_loop(request, conn)

    def _relay_conn_loop(self, request: Request, conn: Any) -> None:
        dial = self.dial or _default_dial
        address = _join_host_port(request.description_address, request.description_port)
        try:
            dst = dial("tcp", address)
        except OSError as exc:
            self.error_handler(exc)
            return
        with dst:
            self._bridge(conn, dst)

    def _relay_packet_loop(self, conn: Any) -> None:
        udp = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        udp.bind(("", 0))
        outbound = UDPConn(udp)
        inbound = TrojanConn(conn)
        results: queue.Queue = queue.Queue(maxsize=2)

        def copy_packets(src: Any, dst: Any) -> None:
            try:
                while True:
                    payload, metadata = src.read_with_metadata(MAX_PACKET_SIZE)
                    if not payload:
                        results.put(None)
                        return
                    dst.write_with_metadata(payload, metadata)
            except Exception as exc:  # noqa: BLE001 - the first failure ends the relay
                results.put(exc)

        try:
            threading.Thread(target=copy_packets, args=(inbound, outbound), daemon=True).start()
            threading.Thread(target=copy_packets, args=(outbound, inbound), daemon=True).start()
            err = results.get()
            if err is not None:
                self.logger.error("%s", err)
        finally:
            udp.close()
            conn.close()
# remproxy

Building blocks for proxy servers and tunnels.

- **`remproxy.socks5.auth`**: SOCKS5 method negotiation. `negotiate` reads
  the methods a client offers and runs the first enabled authenticator:
  `NoAuthAuthenticator`, `UserPassAuthenticator` (checks against
  `StaticCredentials`, a `dict` of user name to password) or
  `RelayAuthenticator`. It returns an `AuthContext`. Failures raise
  `Socks5Error`, `UserAuthFailedError` or `NoSupportedAuthError`.
- **`remproxy.trojan`**:
  - `protocol` reads the 56-byte token (`get_token`) and the request header
    (`parse_request`, which returns a `Request`).
  - `address` holds the address codec (`Address`, `AddressType`,
    `read_address`, `new_address_from_addr`, `new_address_from_host_port`).
  - `tunnel` carries UDP over the trojan stream (`TrojanConn`) and sends
    datagrams over a plain socket (`UDPConn`).
  - `pipe.copy` is a one-way stream copy.
  - `server` holds a threaded TLS `Server` configured by `TrojanConfig`,
    `TLSConfig` and `ReverseProxyConfig`.
- **`remproxy.kcp`**: `snmp.Snmp` holds connection counters, with a shared
  `DEFAULT_SNMP`. `timedsched.TimedSched` runs functions at
  `time.monotonic()` deadlines on a pool of worker threads.
- **`remproxy.utils`**:
  - `address` splits and joins `host:port` strings, makes random strings and
    ports, and looks up local interface addresses.
  - `ciphers` has AES-CBC with PKCS#7 padding, AES-256-CTR and XOR stream
    encryptors.
  - `clash` holds Clash proxy records with YAML output.
  - `maps.merge_maps` merges two string maps.
  - `ringlog.RingLogWriter` keeps the most recent log entries in memory.

## Examples

SOCKS5 username/password negotiation over in-memory streams:

```python
import io
from remproxy.socks5.auth import StaticCredentials, UserPassAuthenticator, negotiate

credentials = StaticCredentials({"alice": "password"})
reader = io.BytesIO(bytes([1, 2, 1, 5]) + b"alice" + bytes([8]) + b"password")
writer = io.BytesIO()

context = negotiate([UserPassAuthenticator(credentials)], reader, writer)
assert context.method == 2
assert writer.getvalue() == b"\x05\x02\x01\x00"
```

Parsing a Trojan request. By default the server accepts a token that equals
`sha224` of the configured password:

```python
import io
from remproxy.trojan.server import Server, TrojanConfig, sha224

password = "password"
server = Server(config=TrojanConfig(password=password))
stream = io.BytesIO(
    sha224(password).encode()
    + b"\r\n\x01\x01" + bytes([127, 0, 0, 1]) + (443).to_bytes(2, "big") + b"\r\n"
)
request = server.parse_request(stream)
assert (request.description_address, request.description_port) == ("127.0.0.1", 443)
```

The address codec:

```python
import io
from remproxy.trojan.address import new_address_from_addr, read_address

addr = new_address_from_addr("udp", "1.2.3.4:53")
assert addr.to_bytes() == b"\x01\x01\x02\x03\x04\x00\x35"
assert str(read_address(io.BytesIO(addr.to_bytes()), "udp")) == "1.2.3.4:53"
```

Ciphers and small helpers:

```python
from remproxy.utils.address import join_host_port, split_addr
from remproxy.utils.ciphers import aes_decrypt, aes_encrypt, pkcs7_padding
from remproxy.utils.maps import merge_maps

key = bytes(range(16))
assert len(pkcs7_padding(b"abc", 16)) == 16
assert aes_decrypt(aes_encrypt(b"hello", key), key) == b"hello"
assert split_addr(join_host_port("10.0.0.1", 443)) == ("10.0.0.1", 443)
assert merge_maps({"a": "1"}, {"a": "2", "b": "3"}) == {"a": "2", "b": "3"}
```

## Running a Trojan server

`Server.listen_and_serve(host, port)` needs a `TLSConfig` that names an
existing certificate file and key file. Without one it raises `ValueError`.
Clients that fail authentication are forwarded to the `ReverseProxyConfig`
host and port if one is set, and closed otherwise. Pass your own handlers to
the `Server` constructor to change how connections, authentication, requests
and errors are handled.

## What is not included

- The SOCKS5 side covers method negotiation only. There is no SOCKS5 server,
  no request or reply codec, no command rule set, no name resolver and no
  relay handshake builder.
- There is no helper that generates TLS certificates or builds TLS contexts.
  You supply the certificate and key files.
- The KCP part holds only the statistics counters and the scheduler. There
  are no KCP sessions, listeners or transports.
- The package installs no command-line programs.
"""SOCKS5 method negotiation and the authenticators it can select."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import BinaryIO, ClassVar, Protocol, Union

SOCKS5_VERSION = 5

NO_AUTH = 0
USER_PASS_AUTH = 2
RELAY_AUTH = 3
NO_ACCEPTABLE = 0xFF

USER_AUTH_VERSION = 1
AUTH_SUCCESS = 0
AUTH_FAILURE = 1


class Socks5Error(Exception):
    """A SOCKS5 protocol failure; ``reply`` carries a reply code when one applies."""

    def __init__(self, message: str, reply: int | None = None) -> None:
        super().__init__(message)
        self.reply = reply


class UserAuthFailedError(Socks5Error):
    """The client presented credentials that the store rejected."""

    def __init__(self) -> None:
        super().__init__("User authentication failed")


class NoSupportedAuthError(Socks5Error):
    """None of the methods offered by the client is enabled."""

    def __init__(self) -> None:
        super().__init__("No supported authentication mechanism")


@dataclass
class AuthContext:
    """Outcome of a successful negotiation: the method and what it collected."""

    method: int
    payload: dict[str, str] | None = None


class _CredentialStore(Protocol):
    def valid(self, user: str, password: str) -> bool: ...


class _Authenticator(Protocol):
    code: int

    def authenticate(self, reader: BinaryIO, writer: BinaryIO) -> AuthContext: ...


def _read_exact(reader: BinaryIO, size: int) -> bytes:
    buf = bytearray()
    while len(buf) < size:
        chunk = reader.read(size - len(buf))
        if not chunk:
            raise EOFError(f"unexpected EOF: wanted {size} bytes, got {len(buf)}")
        buf += chunk
    return bytes(buf)


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", "surrogateescape")


class StaticCredentials(dict):
    """A plain mapping of user name to password used as a credential store."""

    def valid(self, user: str, password: str) -> bool:
        if user not in self:
            return False
        return self[user] == password


class NoAuthAuthenticator:
    """Handles the "no authentication required" method."""

    code: ClassVar[int] = NO_AUTH

    def authenticate(self, reader: BinaryIO, writer: BinaryIO) -> AuthContext:
        writer.write(bytes((SOCKS5_VERSION, NO_AUTH)))
        return AuthContext(NO_AUTH, None)


@dataclass
class UserPassAuthenticator:
    """Handles username/password authentication against a credential store."""

    credentials: _CredentialStore
    code: ClassVar[int] = USER_PASS_AUTH

    def authenticate(self, reader: BinaryIO, writer: BinaryIO) -> AuthContext:
        writer.write(bytes((SOCKS5_VERSION, USER_PASS_AUTH)))

        version, user_len = _read_exact(reader, 2)
        if version != USER_AUTH_VERSION:
            raise Socks5Error(f"Unsupported auth version: {version}")

        user = _decode(_read_exact(reader, user_len))
        (pass_len,) = _read_exact(reader, 1)
        password = _decode(_read_exact(reader, pass_len))

        if not self.credentials.valid(user, password):
            writer.write(bytes((USER_AUTH_VERSION, AUTH_FAILURE)))
            raise UserAuthFailedError()

        writer.write(bytes((USER_AUTH_VERSION, AUTH_SUCCESS)))
        return AuthContext(USER_PASS_AUTH, {"Username": user, "Password": password})


class RelayAuthenticator:
    """Accepts the relay method without any exchange on the wire."""

    code: ClassVar[int] = RELAY_AUTH

    def authenticate(self, reader: BinaryIO, writer: BinaryIO) -> AuthContext:
        return AuthContext(RELAY_AUTH, None)


def read_methods(reader: BinaryIO) -> bytes:
    """Read the method count and the method codes that follow it."""
    (count,) = _read_exact(reader, 1)
    return _read_exact(reader, count)


def negotiate(
    methods: Union[Mapping[int, _Authenticator], Iterable[_Authenticator]],
    reader: BinaryIO,
    writer: BinaryIO,
) -> AuthContext:
    """Pick the first offered method that is enabled and run its authenticator."""
    if not isinstance(methods, Mapping):
        methods = {authenticator.code: authenticator for authenticator in methods}

    try:
        offered = read_methods(reader)
    except (EOFError, OSError) as exc:
        raise Socks5Error(f"Failed to get auth methods: {exc}") from exc

    for method in offered:
        authenticator = methods.get(method)
        if authenticator is not None:
            return authenticator.authenticate(reader, writer)

    writer.write(bytes((SOCKS5_VERSION, NO_ACCEPTABLE)))
    raise NoSupportedAuthError()
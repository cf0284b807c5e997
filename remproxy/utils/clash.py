"""Clash proxy configuration records and their YAML form."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Mapping

import yaml

_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1


def string_to_int(s: str) -> int:
    """Parse a decimal integer, returning 0 for empty, malformed or out-of-range text."""
    if not s or not _INT_RE.fullmatch(s):
        return 0
    value = int(s)
    if not _INT64_MIN <= value <= _INT64_MAX:
        return 0
    return value


@dataclass
class Proxy:
    """One entry of the ``proxies`` list."""

    name: str = ""
    type: str = ""
    server: str = ""
    port: int = 0
    username: str = ""
    password: str = ""
    udp: bool = False
    tls: bool = False
    skip_cert_verify: bool = False
    cipher: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.name:
            out["name"] = self.name
        out["type"] = self.type
        out["server"] = self.server
        out["port"] = self.port
        if self.username:
            out["username"] = self.username
        if self.password:
            out["password"] = self.password
        out["udp"] = self.udp
        out["tls"] = self.tls
        out["skip-cert-verify"] = self.skip_cert_verify
        if self.cipher:
            out["cipher"] = self.cipher
        return out


@dataclass
class ProxyGroup:
    name: str = ""
    type: str = ""
    proxies: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": self.type, "proxies": list(self.proxies)}


@dataclass
class ClashConfig:
    proxies: list[Proxy] = field(default_factory=list)
    mode: str = ""
    rules: list[str] = field(default_factory=list)
    proxy_groups: list[ProxyGroup] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "proxies": [proxy.to_dict() for proxy in self.proxies],
            "mode": self.mode,
            "rules": list(self.rules),
            "proxy-groups": [group.to_dict() for group in self.proxy_groups],
        }

    def to_yaml(self) -> str:
        """Serialize in field order with the YAML key names clash expects."""
        return yaml.safe_dump(self.to_dict(), sort_keys=False, allow_unicode=True)


def new_proxies(options: Mapping[str, str]) -> Proxy:
    """Build a proxy from string options; UDP on, TLS off, certificate checks skipped."""
    return Proxy(
        name=options.get("name", ""),
        type=options.get("type", ""),
        server=options.get("server", ""),
        port=string_to_int(options.get("port", "")),
        username=options.get("username", ""),
        password=options.get("password", ""),
        udp=True,
        tls=False,
        skip_cert_verify=True,
        cipher=options.get("cipher", ""),
    )
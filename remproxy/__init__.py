"""Proxy building blocks: SOCKS5 authentication, a Trojan server, KCP helpers and utilities."""

__version__ = "0.1.0"
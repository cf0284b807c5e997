"""Trojan protocol: request parsing, address codec, UDP tunnelling, stream copy and server."""
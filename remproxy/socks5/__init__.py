"""SOCKS5 method negotiation and authenticators."""
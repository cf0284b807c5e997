"""Utilities: addresses, ciphers, Clash config, map merging and a ring log writer."""
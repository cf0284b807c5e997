"""AES (CBC and CTR) and repeating-key XOR helpers."""

from __future__ import annotations

from typing import Any, BinaryIO

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

_CHUNK = 32 * 1024
_BLOCK = 16


def pkcs7_padding(data: bytes, block_size: int) -> bytes:
    """Append PKCS#7 padding; a whole block is added when already aligned."""
    padding = block_size - len(data) % block_size
    return bytes(data) + bytes((padding,)) * padding


def pkcs7_unpadding(data: bytes) -> bytes:
    """Strip the PKCS#7 padding named by the last byte."""
    if not data:
        raise ValueError("cannot unpad empty data")
    count = data[-1]
    if count > len(data):
        raise ValueError(f"invalid padding length {count}")
    return bytes(data[: len(data) - count])


def aes_encrypt(data: bytes, key: bytes) -> bytes:
    """AES-CBC with PKCS#7 padding; the IV is the first block of the key."""
    cipher = Cipher(algorithms.AES(bytes(key)), modes.CBC(bytes(key[:_BLOCK])))
    encryptor = cipher.encryptor()
    return encryptor.update(pkcs7_padding(data, _BLOCK)) + encryptor.finalize()


def aes_decrypt(data: bytes, key: bytes) -> bytes:
    """Reverse :func:`aes_encrypt`."""
    cipher = Cipher(algorithms.AES(bytes(key)), modes.CBC(bytes(key[:_BLOCK])))
    decryptor = cipher.decryptor()
    return pkcs7_unpadding(decryptor.update(bytes(data)) + decryptor.finalize())


def new_aes_stream(key: bytes, iv: bytes) -> Any:
    """Return an AES-256-CTR keystream context; ``update`` transforms bytes."""
    if len(key) != 32:
        raise ValueError(f"key must be 32 bytes, got {len(key)}")
    if len(iv) != _BLOCK:
        raise ValueError(f"iv must be 16 bytes, got {len(iv)}")
    return Cipher(algorithms.AES(bytes(key)), modes.CTR(bytes(iv))).encryptor()


def _transform(dst: BinaryIO, src: BinaryIO, apply) -> None:
    while True:
        chunk = src.read(_CHUNK)
        if not chunk:
            return
        dst.write(apply(chunk))


class AesCtrEncryptor:
    """Streams data through one AES-CTR keystream shared by encrypt and decrypt."""

    def __init__(self, key: bytes, iv: bytes) -> None:
        self.key = bytes(key)
        self.iv = bytes(iv)
        self.stream = new_aes_stream(self.key, self.iv)

    def encrypt(self, dst: BinaryIO, src: BinaryIO) -> None:
        _transform(dst, src, self.stream.update)

    def decrypt(self, dst: BinaryIO, src: BinaryIO) -> None:
        _transform(dst, src, self.stream.update)

    def reset(self) -> None:
        """Restart the keystream from the beginning."""
        self.stream = new_aes_stream(self.key, self.iv)


class XorStream:
    """A keystream of key and IV bytes, both repeated, XORed into the data."""

    def __init__(self, key: bytes, iv: bytes, counter: int = 0) -> None:
        self.key = bytes(key)
        self.iv = bytes(iv)
        self.counter = counter

    def xor_key_stream(self, data: bytes) -> bytes:
        if data and (not self.key or not self.iv):
            raise ValueError("key and iv must not be empty")
        key, iv, start = self.key, self.iv, self.counter
        key_len, iv_len = len(key), len(iv)
        out = bytes(
            byte ^ key[(start + i) % key_len] ^ iv[(start + i) % iv_len]
            for i, byte in enumerate(data)
        )
        self.counter += len(data)
        return out

    update = xor_key_stream


class XorEncryptor:
    """Streams data through one XOR keystream shared by encrypt and decrypt."""

    def __init__(self, key: bytes, iv: bytes) -> None:
        self.key = bytes(key)
        self.iv = bytes(iv)
        self.stream = XorStream(self.key, self.iv)

    def encrypt(self, dst: BinaryIO, src: BinaryIO) -> None:
        _transform(dst, src, self.stream.xor_key_stream)

    def decrypt(self, dst: BinaryIO, src: BinaryIO) -> None:
        _transform(dst, src, self.stream.xor_key_stream)

    def reset(self) -> None:
        """Restart the keystream from the beginning."""
        self.stream = XorStream(self.key, self.iv)
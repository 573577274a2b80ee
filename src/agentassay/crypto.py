"""Symmetric encryption of stored agent API keys."""

from __future__ import annotations

import os
from typing import Protocol

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

_IV_LENGTH = 16


class SecretError(Exception):
    """Raised when a stored secret cannot be decrypted."""


class SecretProvider(Protocol):
    """Capability that turns stored ciphertext back into an API key."""

    def encrypt(self, plaintext: str) -> str: ...

    def decrypt(self, ciphertext: str) -> str: ...


class AesSecretProvider:
    """AES-256-CBC keyed by an operator-provided master key.

    Ciphertext is stored as ``"<iv hex>:<ciphertext hex>"``. The master key is
    right-padded with spaces (or truncated) to 32 bytes.
    """

    def __init__(self, master_key: str) -> None:
        if not master_key:
            raise SecretError("An encryption key is required")
        self._key = master_key.encode("utf-8").ljust(32, b" ")[:32]

    def _cipher(self, iv: bytes) -> Cipher:
        return Cipher(algorithms.AES(self._key), modes.CBC(iv))

    def encrypt(self, plaintext: str) -> str:
        iv = os.urandom(_IV_LENGTH)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        data = padder.update(plaintext.encode("utf-8")) + padder.finalize()
        encryptor = self._cipher(iv).encryptor()
        encrypted = encryptor.update(data) + encryptor.finalize()
        return f"{iv.hex()}:{encrypted.hex()}"

    def decrypt(self, ciphertext: str) -> str:
        iv_hex, sep, body_hex = ciphertext.partition(":")
        if not sep:
            raise SecretError("Malformed ciphertext: expected '<iv>:<data>'")
        try:
            iv = bytes.fromhex(iv_hex)
            body = bytes.fromhex(body_hex)
            decryptor = self._cipher(iv).decryptor()
            data = decryptor.update(body) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            plain = unpadder.update(data) + unpadder.finalize()
            return plain.decode("utf-8")
        except ValueError as exc:
            raise SecretError(f"Cannot decrypt secret: {exc}") from exc


def mask_api_key(api_key: str) -> str:
    """Display form of an API key: first and last four characters only."""
    if not api_key or len(api_key) < 8:
        return "****"
    return f"{api_key[:4]}****{api_key[-4:]}"

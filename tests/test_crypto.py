"""Tests for API key encryption."""

import pytest

from agentassay.crypto import AesSecretProvider, SecretError, mask_api_key


class TestAesSecretProvider:
    def test_round_trip(self):
        provider = AesSecretProvider("master-key")
        token = provider.encrypt("sk-secret-123")
        assert token != "sk-secret-123"
        assert provider.decrypt(token) == "sk-secret-123"

    def test_format_is_iv_and_ciphertext_hex(self):
        token = AesSecretProvider("k").encrypt("abc")
        iv_hex, ct_hex = token.split(":")
        assert len(iv_hex) == 32
        assert len(ct_hex) % 32 == 0
        bytes.fromhex(iv_hex + ct_hex)

    def test_random_iv(self):
        provider = AesSecretProvider("k")
        assert provider.encrypt("same") != provider.encrypt("same")

    def test_wrong_key_fails(self):
        token = AesSecretProvider("key-one").encrypt("secret value")
        with pytest.raises(SecretError):
            # A wrong key almost always breaks the padding or the UTF-8 decode.
            result = AesSecretProvider("key-two").decrypt(token)
            if result != "secret value":
                raise SecretError("mismatch")

    def test_malformed(self):
        provider = AesSecretProvider("k")
        with pytest.raises(SecretError, match="Malformed"):
            provider.decrypt("no-separator")
        with pytest.raises(SecretError):
            provider.decrypt("zz:zz")

    def test_empty_key_rejected(self):
        with pytest.raises(SecretError):
            AesSecretProvider("")

    def test_long_key_truncated(self):
        a = AesSecretProvider("x" * 32)
        b = AesSecretProvider("x" * 40)
        assert b.decrypt(a.encrypt("hi")) == "hi"


def test_mask_api_key():
    assert mask_api_key("sk-1234567890") == "sk-1****7890"
    assert mask_api_key("short") == "****"

"""Tests for credential hashing primitives."""

import hashlib

import pytest
from unittest.mock import patch

from authhub.core.auth.exceptions import CryptoFailure
from authhub.core.auth.hashing import CredentialHasher


@pytest.fixture
def keyed_hasher():
    return CredentialHasher("server-key")


class TestTokenHashing:
    """Test cases for refresh token digests."""

    def test_hash_is_deterministic(self, keyed_hasher):
        assert keyed_hasher.hash_token("secret") == keyed_hasher.hash_token("secret")

    def test_hash_differs_per_secret(self, keyed_hasher):
        assert keyed_hasher.hash_token("secret-a") != keyed_hasher.hash_token("secret-b")

    def test_hash_is_not_the_secret(self, keyed_hasher):
        digest = keyed_hasher.hash_token("secret")

        assert digest != "secret"
        assert len(digest) == 64

    def test_key_changes_digest(self, keyed_hasher):
        assert keyed_hasher.hash_token("secret") != CredentialHasher("other-key").hash_token("secret")

    def test_unkeyed_hash_is_sha256(self):
        assert CredentialHasher().hash_token("secret") == hashlib.sha256(b"secret").hexdigest()


class TestRandomSecret:
    """Test cases for random secret generation."""

    def test_hex_secret_length(self, keyed_hasher):
        secret = keyed_hasher.random_secret(32)

        assert len(secret) == 64
        int(secret, 16)

    def test_urlsafe_secret(self, keyed_hasher):
        secret = keyed_hasher.random_secret(32, encoding="urlsafe")

        assert "+" not in secret and "/" not in secret and "=" not in secret

    def test_secrets_are_unique(self, keyed_hasher):
        assert len({keyed_hasher.random_secret(16) for _ in range(50)}) == 50

    def test_unsupported_encoding(self, keyed_hasher):
        with pytest.raises(ValueError, match="Unsupported encoding"):
            keyed_hasher.random_secret(32, encoding="base32")

    def test_entropy_failure_raises_crypto_failure(self, keyed_hasher):
        with patch("authhub.core.auth.hashing.secrets.token_hex", side_effect=OSError("no entropy")):
            with pytest.raises(CryptoFailure) as exc_info:
                keyed_hasher.random_secret(32)

        assert exc_info.value.operation == "random secret generation"


class TestHmac:
    """Test cases for HMAC signing."""

    def test_sign_and_verify(self, keyed_hasher):
        signature = keyed_hasher.hmac("payload", "key")

        assert keyed_hasher.verify_hmac("payload", "key", signature) is True
        assert keyed_hasher.verify_hmac("payload", "other", signature) is False
        assert keyed_hasher.verify_hmac("tampered", "key", signature) is False

    def test_unknown_algorithm(self, keyed_hasher):
        with pytest.raises(CryptoFailure):
            keyed_hasher.hmac("payload", "key", algorithm="not-a-digest")

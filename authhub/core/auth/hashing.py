"""Credential hashing and signing primitives."""

import hashlib
import hmac as _hmac
import secrets

from .exceptions import CryptoFailure


class CredentialHasher:
    """
    Hashing, signing and random secret generation.

    Refresh tokens are stored as HMAC-SHA256 digests keyed by a server secret
    (plain SHA-256 when no key is configured), so a leaked table cannot be
    replayed without the key.
    """

    def __init__(self, token_hash_key: str = "") -> None:
        """
        Initialize hasher.

        Args:
            token_hash_key: Server secret used to key refresh token digests
        """
        self._token_hash_key = token_hash_key.encode("utf-8") if token_hash_key else b""

    def hash_token(self, secret: str) -> str:
        """
        Compute the lookup digest of a token secret.

        Args:
            secret: Raw token value

        Returns:
            Hex digest
        """
        data = secret.encode("utf-8")
        try:
            if self._token_hash_key:
                return _hmac.new(self._token_hash_key, data, hashlib.sha256).hexdigest()
            return hashlib.sha256(data).hexdigest()
        except (ValueError, TypeError) as e:
            raise CryptoFailure("token hashing") from e

    def random_secret(self, n_bytes: int = 32, encoding: str = "hex") -> str:
        """
        Generate cryptographically secure token material.

        Args:
            n_bytes: Entropy in bytes
            encoding: "hex" or "urlsafe" (base64url without padding)

        Returns:
            Encoded random string
        """
        if encoding not in ("hex", "urlsafe"):
            raise ValueError(f"Unsupported encoding: {encoding}")
        try:
            if encoding == "hex":
                return secrets.token_hex(n_bytes)
            return secrets.token_urlsafe(n_bytes)
        except (OSError, NotImplementedError) as e:
            raise CryptoFailure("random secret generation") from e

    def hmac(self, data: str, key: str, algorithm: str = "sha256") -> str:
        """
        Sign data with HMAC.

        Args:
            data: Payload to sign
            key: Signing key
            algorithm: hashlib digest name

        Returns:
            Hex signature
        """
        try:
            return _hmac.new(key.encode("utf-8"), data.encode("utf-8"), algorithm).hexdigest()
        except ValueError as e:
            raise CryptoFailure(f"hmac-{algorithm}") from e

    def verify_hmac(self, data: str, key: str, signature: str, algorithm: str = "sha256") -> bool:
        """Check an HMAC signature in constant time."""
        expected = self.hmac(data, key, algorithm)
        return _hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))

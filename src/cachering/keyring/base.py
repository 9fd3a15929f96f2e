"""Base classes, protocols, and types for the keyring.

This module defines the exceptions, algorithm descriptors and key type that
the encryptors and the :class:`~cachering.keyring.keyring.Keyring` build on.

Key Material:
    Every algorithm uses keys that are twice the cipher key size. The first
    half signs the envelope (HMAC-SHA256), the second half encrypts it.

    - ``aes-128-cbc``: 16 bytes (HMAC) + 16 bytes (encryption)
    - ``aes-192-cbc``: 24 bytes (HMAC) + 24 bytes (encryption)
    - ``aes-256-cbc``: 32 bytes (HMAC) + 32 bytes (encryption)
    - ``aes-256-gcm``: 32 bytes (HMAC) + 32 bytes (encryption)

Example:
    >>> from cachering.keyring.base import EncryptionAlgorithm, Key
    >>>
    >>> algorithm = EncryptionAlgorithm.AES_256_GCM
    >>> key = Key(id=1, secret=generate_secret(algorithm), size=algorithm.key_size)
"""

from __future__ import annotations

import base64
import binascii
import hmac
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable


# =============================================================================
# Exceptions
# =============================================================================


class KeyringError(Exception):
    """Base exception for keyring errors."""

    pass


class MissingDigestSalt(KeyringError):
    """The keyring was built without an explicit digest salt."""

    pass


class InvalidSecret(KeyringError):
    """A key secret has the wrong size or cannot be decoded."""

    pass


class EmptyKeyring(KeyringError):
    """Attempted to look up a key on a keyring with no keys."""

    pass


class UnknownKey(KeyringError):
    """The requested key id is not on the keyring."""

    pass


class InvalidAuthentication(KeyringError):
    """Envelope authentication failed (HMAC or GCM tag mismatch)."""

    pass


class UnsupportedAlgorithm(KeyringError):
    """Requested encryption algorithm is not available."""

    def __init__(self, algorithm: str, available: list[str] | None = None) -> None:
        self.algorithm = algorithm
        self.available = available or []
        msg = f"Algorithm '{algorithm}' is not supported"
        if self.available:
            msg += f". Available: {', '.join(self.available)}"
        super().__init__(msg)


class MissingKeyringError(KeyringError):
    """No keyring could be resolved."""

    pass


# =============================================================================
# Enums
# =============================================================================


class EncryptionAlgorithm(str, Enum):
    """Supported encryption algorithms."""

    AES_128_CBC = "aes-128-cbc"
    AES_192_CBC = "aes-192-cbc"
    AES_256_CBC = "aes-256-cbc"
    AES_256_GCM = "aes-256-gcm"

    @property
    def key_size(self) -> int:
        """Get cipher key size in bytes."""
        key_sizes = {
            self.AES_128_CBC: 16,
            self.AES_192_CBC: 24,
            self.AES_256_CBC: 32,
            self.AES_256_GCM: 32,
        }
        return key_sizes[self]

    @property
    def iv_size(self) -> int:
        """Get IV/nonce size in bytes."""
        return 12 if self.is_authenticated else 16

    @property
    def tag_size(self) -> int:
        """Get cipher authentication tag size in bytes (0 for CBC)."""
        return 16 if self.is_authenticated else 0

    @property
    def is_authenticated(self) -> bool:
        """Check if the cipher itself authenticates (AEAD)."""
        return self == self.AES_256_GCM


HMAC_SIZE = 32


# =============================================================================
# Key
# =============================================================================


def _decode_secret(secret: bytes | str, expected_size: int) -> bytes:
    """Decode a secret given as raw bytes, base64 or hex."""
    if isinstance(secret, bytes) and len(secret) == expected_size:
        return secret

    if isinstance(secret, bytes):
        try:
            text = secret.decode("ascii").strip()
        except UnicodeDecodeError as e:
            raise InvalidSecret(
                f"Secret must be {expected_size} bytes; got {len(secret)}"
            ) from e
    else:
        text = str(secret).strip()

    try:
        decoded = base64.b64decode(text, validate=True)
        if len(decoded) == expected_size:
            return decoded
    except (binascii.Error, ValueError):
        pass

    try:
        decoded = bytes.fromhex(text)
        if len(decoded) == expected_size:
            return decoded
    except ValueError:
        pass

    raw = text.encode("utf-8")
    if len(raw) == expected_size:
        return raw

    raise InvalidSecret(
        f"Secret must be {expected_size} bytes; got {len(raw)}"
    )


@dataclass(repr=False)
class Key:
    """A versioned symmetric key.

    Attributes:
        id: Non-negative key id. Higher ids are newer.
        secret: Key material (raw bytes, base64 or hex), ``2 * size`` bytes.
        size: Cipher key size of the encryptor this key is used with.
    """

    id: int
    secret: bytes | str
    size: int
    _signing_key: bytes = field(init=False, default=b"")
    _encryption_key: bytes = field(init=False, default=b"")

    def __post_init__(self) -> None:
        try:
            self.id = int(str(self.id))
        except ValueError as e:
            raise InvalidSecret(f"Key id must be an integer; got {self.id!r}") from e
        if self.id < 0:
            raise InvalidSecret(f"Key id must be non-negative; got {self.id}")

        material = _decode_secret(self.secret, self.size * 2)
        self.secret = material
        self._signing_key = material[: self.size]
        self._encryption_key = material[self.size :]

    @property
    def signing_key(self) -> bytes:
        """HMAC key (first half of the secret)."""
        return self._signing_key

    @property
    def encryption_key(self) -> bytes:
        """Cipher key (second half of the secret)."""
        return self._encryption_key

    def __repr__(self) -> str:
        return f"<Key id={self.id}>"

    __str__ = __repr__


# =============================================================================
# Protocols
# =============================================================================


@runtime_checkable
class Encryptor(Protocol):
    """Protocol for encryption implementations."""

    @property
    def key_size(self) -> int:
        """Get cipher key size in bytes."""
        ...

    def encrypt(self, key: Key, plaintext: bytes) -> str:
        """Encrypt plaintext into a base64 envelope."""
        ...

    def decrypt(self, key: Key, ciphertext: str) -> bytes:
        """Decrypt a base64 envelope.

        Raises:
            InvalidAuthentication: If the envelope fails verification.
        """
        ...


# =============================================================================
# Utility Functions
# =============================================================================


def generate_secret(algorithm: EncryptionAlgorithm) -> str:
    """Generate random key material for an algorithm, base64-encoded.

    Args:
        algorithm: Algorithm to generate the secret for.

    Returns:
        Base64 string decoding to ``2 * algorithm.key_size`` bytes.
    """
    return base64.b64encode(os.urandom(algorithm.key_size * 2)).decode("ascii")


def constant_time_compare(a: bytes, b: bytes) -> bool:
    """Compare two byte strings in constant time."""
    return hmac.compare_digest(a, b)

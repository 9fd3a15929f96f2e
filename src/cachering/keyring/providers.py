"""Encryption provider implementations.

This module provides the concrete AES encryptors used by the keyring. Every
envelope is signed with HMAC-SHA256 over the IV and ciphertext, so the CBC
variants are tamper-evident even though CBC itself is not authenticated.

Envelope Format (base64 of the concatenation):
    - CBC: ``hmac || iv || ciphertext``
    - GCM: ``hmac || nonce || tag || ciphertext``

Supported Algorithms:
    - AES-128-CBC (default for hand-built keyrings)
    - AES-192-CBC
    - AES-256-CBC
    - AES-256-GCM (default for keyrings loaded from key files)

Example:
    >>> from cachering.keyring.providers import get_encryptor
    >>>
    >>> encryptor = get_encryptor("aes-256-gcm")
    >>> envelope = encryptor.encrypt(key, b"secret data")
    >>> encryptor.decrypt(key, envelope)
    b'secret data'
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import os
from abc import ABC, abstractmethod

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from cachering.keyring.base import (
    HMAC_SIZE,
    EncryptionAlgorithm,
    InvalidAuthentication,
    InvalidSecret,
    Key,
    UnsupportedAlgorithm,
    constant_time_compare,
)


# =============================================================================
# Base Encryptor
# =============================================================================


class BaseEncryptor(ABC):
    """Base class for the AES encryptors.

    Handles key validation, IV generation, HMAC signing and envelope
    framing. Subclasses only implement the raw cipher step.
    """

    def __init__(self, algorithm: EncryptionAlgorithm) -> None:
        """Initialize encryptor.

        Args:
            algorithm: Encryption algorithm this provider implements.
        """
        self._algorithm = algorithm

    @property
    def algorithm(self) -> EncryptionAlgorithm:
        """Get the encryption algorithm."""
        return self._algorithm

    @property
    def key_size(self) -> int:
        """Get required cipher key size in bytes."""
        return self._algorithm.key_size

    @property
    def iv_size(self) -> int:
        """Get IV/nonce size in bytes."""
        return self._algorithm.iv_size

    @property
    def tag_size(self) -> int:
        """Get cipher tag size in bytes."""
        return self._algorithm.tag_size

    def generate_iv(self) -> bytes:
        """Generate a fresh random IV/nonce."""
        return os.urandom(self.iv_size)

    def _validate_key(self, key: Key) -> None:
        """Validate key size."""
        if len(key.encryption_key) != self.key_size:
            raise InvalidSecret(
                f"Invalid key size for {self._algorithm.value}: expected "
                f"{self.key_size} bytes, got {len(key.encryption_key)} bytes"
            )

    @staticmethod
    def _sign(key: Key, data: bytes) -> bytes:
        return hmac.new(key.signing_key, data, hashlib.sha256).digest()

    @abstractmethod
    def _encrypt_impl(self, key: bytes, iv: bytes, plaintext: bytes) -> tuple[bytes, bytes]:
        """Implementation-specific encryption.

        Args:
            key: Cipher key.
            iv: IV/nonce.
            plaintext: Data to encrypt.

        Returns:
            Tuple of (tag, ciphertext). Tag is empty for CBC.
        """
        ...

    @abstractmethod
    def _decrypt_impl(self, key: bytes, iv: bytes, tag: bytes, ciphertext: bytes) -> bytes:
        """Implementation-specific decryption.

        Raises:
            InvalidAuthentication: If the cipher rejects the data.
        """
        ...

    def encrypt(self, key: Key, plaintext: bytes) -> str:
        """Encrypt plaintext data.

        Args:
            key: Key to encrypt with.
            plaintext: Data to encrypt.

        Returns:
            Base64 envelope.
        """
        self._validate_key(key)
        iv = self.generate_iv()
        tag, ciphertext = self._encrypt_impl(key.encryption_key, iv, plaintext)
        body = iv + tag + ciphertext
        return base64.b64encode(self._sign(key, body) + body).decode("ascii")

    def decrypt(self, key: Key, ciphertext: str | bytes) -> bytes:
        """Decrypt a base64 envelope.

        Args:
            key: Key the envelope was encrypted with.
            ciphertext: Base64 envelope.

        Returns:
            Decrypted plaintext.

        Raises:
            InvalidAuthentication: If the envelope is malformed or was not
                produced by this key.
        """
        self._validate_key(key)

        try:
            decoded = base64.b64decode(ciphertext, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidAuthentication("Envelope is not valid base64") from e

        header_size = HMAC_SIZE + self.iv_size + self.tag_size
        if len(decoded) < header_size:
            raise InvalidAuthentication("Envelope is truncated")

        signature, body = decoded[:HMAC_SIZE], decoded[HMAC_SIZE:]
        expected = self._sign(key, body)
        if not constant_time_compare(expected, signature):
            raise InvalidAuthentication(
                f"Expected HMAC to be {base64.b64encode(expected).decode()}; "
                f"got {base64.b64encode(signature).decode()} instead"
            )

        iv = body[: self.iv_size]
        tag = body[self.iv_size : self.iv_size + self.tag_size]
        data = body[self.iv_size + self.tag_size :]
        return self._decrypt_impl(key.encryption_key, iv, tag, data)


# =============================================================================
# AES-CBC Implementation
# =============================================================================


class AesCbcEncryptor(BaseEncryptor):
    """AES-CBC encryption with PKCS7 padding.

    CBC provides confidentiality only; integrity comes from the envelope
    HMAC verified in :meth:`BaseEncryptor.decrypt`.

    Example:
        >>> aes = AesCbcEncryptor(key_size=16)  # AES-128-CBC
        >>> envelope = aes.encrypt(key, b"secret")
    """

    _ALGORITHMS = {
        16: EncryptionAlgorithm.AES_128_CBC,
        24: EncryptionAlgorithm.AES_192_CBC,
        32: EncryptionAlgorithm.AES_256_CBC,
    }

    def __init__(self, key_size: int = 16) -> None:
        """Initialize AES-CBC encryptor.

        Args:
            key_size: Key size in bytes (16, 24 or 32).
        """
        if key_size not in self._ALGORITHMS:
            raise UnsupportedAlgorithm(
                f"aes-{key_size * 8}-cbc",
                available=[a.value for a in self._ALGORITHMS.values()],
            )
        super().__init__(self._ALGORITHMS[key_size])

    def _encrypt_impl(self, key: bytes, iv: bytes, plaintext: bytes) -> tuple[bytes, bytes]:
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext) + padder.finalize()
        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        return b"", encryptor.update(padded) + encryptor.finalize()

    def _decrypt_impl(self, key: bytes, iv: bytes, tag: bytes, ciphertext: bytes) -> bytes:
        try:
            decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError as e:
            raise InvalidAuthentication(
                f"[{self._algorithm.value}] Unable to decrypt: {e}"
            ) from e


# =============================================================================
# AES-GCM Implementation
# =============================================================================


class AesGcmEncryptor(BaseEncryptor):
    """AES-256-GCM authenticated encryption.

    The GCM tag is checked in addition to the envelope HMAC; a mismatch on
    either raises :class:`InvalidAuthentication`.
    """

    def __init__(self) -> None:
        super().__init__(EncryptionAlgorithm.AES_256_GCM)

    def _encrypt_impl(self, key: bytes, iv: bytes, plaintext: bytes) -> tuple[bytes, bytes]:
        # cryptography returns ciphertext || tag
        result = AESGCM(key).encrypt(iv, plaintext, None)
        return result[-self.tag_size :], result[: -self.tag_size]

    def _decrypt_impl(self, key: bytes, iv: bytes, tag: bytes, ciphertext: bytes) -> bytes:
        try:
            return AESGCM(key).decrypt(iv, ciphertext + tag, None)
        except InvalidTag as e:
            raise InvalidAuthentication(
                "Authentication failed: data may be corrupted or tampered"
            ) from e


AES128CBC = AesCbcEncryptor(16)
AES192CBC = AesCbcEncryptor(24)
AES256CBC = AesCbcEncryptor(32)
AES256GCM = AesGcmEncryptor()


# =============================================================================
# Factory Functions
# =============================================================================


_ENCRYPTOR_REGISTRY: dict[str, BaseEncryptor] = {
    EncryptionAlgorithm.AES_128_CBC.value: AES128CBC,
    EncryptionAlgorithm.AES_192_CBC.value: AES192CBC,
    EncryptionAlgorithm.AES_256_CBC.value: AES256CBC,
    EncryptionAlgorithm.AES_256_GCM.value: AES256GCM,
}


def get_encryptor(algorithm: str | EncryptionAlgorithm | BaseEncryptor) -> BaseEncryptor:
    """Resolve an encryptor by algorithm name.

    Args:
        algorithm: Algorithm name (case-insensitive), enum member, or an
            encryptor instance (returned as-is).

    Returns:
        Encryptor instance.

    Raises:
        UnsupportedAlgorithm: If the algorithm is not registered.
    """
    if isinstance(algorithm, BaseEncryptor):
        return algorithm

    name = algorithm.value if isinstance(algorithm, EncryptionAlgorithm) else str(algorithm)
    encryptor = _ENCRYPTOR_REGISTRY.get(name.lower())
    if encryptor is None:
        raise UnsupportedAlgorithm(name, available=list_available_algorithms())
    return encryptor


def register_encryptor(name: str, encryptor: BaseEncryptor) -> None:
    """Register a custom encryptor under a name.

    Args:
        name: Lookup name.
        encryptor: Encryptor instance.
    """
    _ENCRYPTOR_REGISTRY[name.lower()] = encryptor


def list_available_algorithms() -> list[str]:
    """List registered algorithm names."""
    return sorted(_ENCRYPTOR_REGISTRY)

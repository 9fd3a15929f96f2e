"""Key-rotating authenticated encryption.

This module provides versioned symmetric keys, AES encryptors that sign every
envelope with HMAC-SHA256, and the :class:`Keyring` that ties them together.

Features:
    - AES-128/192/256-CBC and AES-256-GCM
    - HMAC-SHA256 envelope signing, verified in constant time
    - Versioned keys: newest id encrypts, every id decrypts
    - Salted SHA1 digests for equality lookups
    - Key files and environment loading

Quick Start:
    >>> from cachering.keyring import Keyring
    >>>
    >>> keyring = Keyring({1: secret}, digest_salt="<custom salt>")
    >>> encrypted, keyring_id, digest = keyring.encrypt("42")
    >>> keyring.decrypt(encrypted, keyring_id)
    b'42'

Rotation:
    >>> keyring[2] = new_secret  # id 2 is now current
    >>> keyring.decrypt(encrypted, 1)  # old values still decrypt
    b'42'

Loading:
    >>> keyring = Keyring.load("config/secrets/keyring.key")
    >>> keyring = Keyring.from_env()  # reads CACHERING_KEYRING
"""

from cachering.keyring.base import (
    HMAC_SIZE,
    EmptyKeyring,
    EncryptionAlgorithm,
    Encryptor,
    InvalidAuthentication,
    InvalidSecret,
    Key,
    KeyringError,
    MissingDigestSalt,
    MissingKeyringError,
    UnknownKey,
    UnsupportedAlgorithm,
    constant_time_compare,
    generate_secret,
)
from cachering.keyring.keyring import DEFAULT_ENV_VAR, Keyring
from cachering.keyring.providers import (
    AES128CBC,
    AES192CBC,
    AES256CBC,
    AES256GCM,
    AesCbcEncryptor,
    AesGcmEncryptor,
    BaseEncryptor,
    get_encryptor,
    list_available_algorithms,
    register_encryptor,
)

__all__ = [
    # Keyring
    "Keyring",
    "DEFAULT_ENV_VAR",
    # Keys
    "Key",
    "EncryptionAlgorithm",
    "Encryptor",
    "generate_secret",
    "constant_time_compare",
    "HMAC_SIZE",
    # Encryptors
    "BaseEncryptor",
    "AesCbcEncryptor",
    "AesGcmEncryptor",
    "AES128CBC",
    "AES192CBC",
    "AES256CBC",
    "AES256GCM",
    "get_encryptor",
    "register_encryptor",
    "list_available_algorithms",
    # Exceptions
    "KeyringError",
    "MissingDigestSalt",
    "InvalidSecret",
    "EmptyKeyring",
    "UnknownKey",
    "InvalidAuthentication",
    "UnsupportedAlgorithm",
    "MissingKeyringError",
]

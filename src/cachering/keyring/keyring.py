"""Versioned keyring with key rotation.

A keyring holds symmetric keys by integer id. The key with the greatest id is
the *current* key and is used for every new encryption; older keys stay on
the keyring so values they encrypted keep decrypting. Rotation is therefore
just adding a key with a higher id. Nothing is re-encrypted in the
background: callers that want to retire a key re-encrypt their own values
and then remove it.

Key Files:
    A key file is a JSON object mapping ids to secrets plus the digest salt::

        {
          "1": "uDiMcWVNTuz//naQ88sOcN+E40CyBRGzGTT7OkoBS6M...",
          "2": "VN8UXRVMNbIh9FWEFVde0q7GUA1SGOie1+FgAKlNYHc...",
          "digest_salt": "<custom salt>"
        }

Digests:
    ``digest(message)`` is ``hex(SHA1(message + digest_salt))``. It does not
    depend on which key encrypted the message, so it can back an equality
    lookup (e.g. find a row by value) without decrypting anything. It is not
    a confidentiality primitive.

Example:
    >>> keyring = Keyring({1: secret}, digest_salt="<custom salt>")
    >>> encrypted, keyring_id, digest = keyring.encrypt("super secret")
    >>> keyring.decrypt(encrypted, keyring_id)
    b'super secret'
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from pathlib import Path
from typing import Any, Iterator, Mapping

from cachering.keyring.base import (
    EmptyKeyring,
    EncryptionAlgorithm,
    InvalidSecret,
    Key,
    MissingDigestSalt,
    MissingKeyringError,
    UnknownKey,
    generate_secret,
)
from cachering.keyring.providers import AES128CBC, AES256GCM, BaseEncryptor, get_encryptor

logger = logging.getLogger(__name__)

DEFAULT_ENV_VAR = "CACHERING_KEYRING"
DIGEST_SALT_FIELD = "digest_salt"


def _to_bytes(message: bytes | str) -> bytes:
    if isinstance(message, bytes):
        return message
    return str(message).encode("utf-8")


class Keyring:
    """Versioned collection of symmetric keys.

    Args:
        keys: Mapping of key id to secret.
        digest_salt: Salt appended before digesting. Must be passed
            explicitly; an empty string is accepted.
        encryptor: Encryptor instance or algorithm name. Defaults to
            AES-128-CBC.

    Raises:
        MissingDigestSalt: If ``digest_salt`` is omitted.
        InvalidSecret: If a secret does not match the encryptor key size.
    """

    def __init__(
        self,
        keys: Mapping[Any, bytes | str] | None = None,
        digest_salt: str | None = None,
        encryptor: BaseEncryptor | str | EncryptionAlgorithm = AES128CBC,
    ) -> None:
        if digest_salt is None:
            raise MissingDigestSalt(
                "Please provide digest_salt; you can disable this error by "
                "explicitly passing an empty string."
            )

        self._encryptor = get_encryptor(encryptor)
        self._digest_salt = digest_salt
        self._keys: dict[int, Key] = {}
        for key_id, secret in (keys or {}).items():
            self.add(key_id, secret)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    @classmethod
    def from_json(
        cls,
        text: str,
        encryptor: BaseEncryptor | str | EncryptionAlgorithm = AES256GCM,
    ) -> "Keyring":
        """Build a keyring from a JSON key document.

        Args:
            text: JSON object of ``id -> secret`` plus ``digest_salt``.
            encryptor: Encryptor to use. Defaults to AES-256-GCM.

        Returns:
            Keyring.
        """
        data = json.loads(text)
        if not isinstance(data, dict):
            raise InvalidSecret("Key document must be a JSON object")
        digest_salt = data.pop(DIGEST_SALT_FIELD, None)
        return cls(data, digest_salt=digest_salt, encryptor=encryptor)

    @classmethod
    def load(
        cls,
        path: str | Path,
        encryptor: BaseEncryptor | str | EncryptionAlgorithm = AES256GCM,
    ) -> "Keyring":
        """Load a keyring from a key file.

        Args:
            path: Path to the JSON key file.
            encryptor: Encryptor to use. Defaults to AES-256-GCM.

        Returns:
            Keyring.
        """
        path = Path(path)
        keyring = cls.from_json(path.read_text(encoding="utf-8"), encryptor=encryptor)
        logger.debug(f"Loaded keyring with {len(keyring)} key(s) from {path}")
        return keyring

    @classmethod
    def from_env(
        cls,
        env_var: str = DEFAULT_ENV_VAR,
        path: str | Path | None = None,
        encryptor: BaseEncryptor | str | EncryptionAlgorithm = AES256GCM,
    ) -> "Keyring":
        """Resolve a keyring from the environment, then from a key file.

        Args:
            env_var: Environment variable holding the JSON key document.
            path: Key file used when the variable is unset.
            encryptor: Encryptor to use. Defaults to AES-256-GCM.

        Raises:
            MissingKeyringError: If neither source is available.
        """
        raw = os.environ.get(env_var)
        if raw:
            return cls.from_json(raw, encryptor=encryptor)
        if path is not None and Path(path).is_file():
            return cls.load(path, encryptor=encryptor)

        location = f" or create {path}" if path is not None else ""
        raise MissingKeyringError(f"Set {env_var}{location}")

    # -------------------------------------------------------------------------
    # Key access
    # -------------------------------------------------------------------------

    @property
    def encryptor(self) -> BaseEncryptor:
        """Get the encryptor used by this keyring."""
        return self._encryptor

    @property
    def digest_salt(self) -> str:
        """Get the digest salt."""
        return self._digest_salt

    @property
    def current_key(self) -> Key | None:
        """Get the key with the greatest id, or None when empty."""
        if not self._keys:
            return None
        return self._keys[max(self._keys)]

    @property
    def ids(self) -> list[int]:
        """Get key ids in ascending order."""
        return sorted(self._keys)

    def __getitem__(self, key_id: int | str) -> Key:
        if not self._keys:
            raise EmptyKeyring("keyring doesn't have any keys")

        try:
            key = self._keys.get(int(str(key_id)))
        except ValueError:
            key = None
        if key is None:
            raise UnknownKey(f"key={key_id} is not available on keyring")
        return key

    def __setitem__(self, key_id: int | str, secret: bytes | str) -> None:
        self.add(key_id, secret)

    def __contains__(self, key_id: object) -> bool:
        try:
            return int(str(key_id)) in self._keys
        except ValueError:
            return False

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[Key]:
        return iter(self._keys[key_id] for key_id in self.ids)

    def __repr__(self) -> str:
        return f"<Keyring ids={self.ids} encryptor={self._encryptor.algorithm.value}>"

    def add(self, key_id: int | str, secret: bytes | str) -> Key:
        """Add a key (replacing any key with the same id).

        Adding an id greater than every existing id makes it current.

        Returns:
            The added key.
        """
        key = Key(id=key_id, secret=secret, size=self._encryptor.key_size)
        self._keys[key.id] = key
        return key

    def remove(self, key_id: int | str) -> bool:
        """Remove a key. Values it encrypted will no longer decrypt."""
        return self._keys.pop(int(str(key_id)), None) is not None

    def clear(self) -> None:
        """Remove every key."""
        self._keys.clear()

    def rotate(self, secret: bytes | str | None = None) -> int:
        """Add a new current key.

        Args:
            secret: Secret for the new key; random when omitted.

        Returns:
            Id of the new key.
        """
        key_id = max(self._keys) + 1 if self._keys else 0
        if secret is None:
            secret = generate_secret(self._encryptor.algorithm)
        self.add(key_id, secret)
        logger.info(f"Rotated keyring to key id {key_id}")
        return key_id

    # -------------------------------------------------------------------------
    # Crypto
    # -------------------------------------------------------------------------

    def encrypt(
        self,
        message: bytes | str,
        keyring_id: int | str | None = None,
    ) -> tuple[str, int, str]:
        """Encrypt a message.

        Args:
            message: Message to encrypt.
            keyring_id: Key id to use; the current key when omitted.

        Returns:
            Tuple of (ciphertext, keyring id used, digest).

        Raises:
            EmptyKeyring: If the keyring has no keys.
            UnknownKey: If ``keyring_id`` is not on the keyring.
        """
        if keyring_id is None:
            key = self.current_key
            if key is None:
                raise EmptyKeyring("keyring doesn't have any keys")
        else:
            key = self[keyring_id]
        data = _to_bytes(message)
        return self._encryptor.encrypt(key, data), key.id, self.digest(data)

    def decrypt(self, message: str | bytes, keyring_id: int | str) -> bytes:
        """Decrypt a message with the exact key it was encrypted with.

        Raises:
            UnknownKey: If ``keyring_id`` is not on the keyring.
            InvalidAuthentication: If the message fails verification.
        """
        key = self[keyring_id]
        return self._encryptor.decrypt(key, message)

    def digest(self, message: bytes | str) -> str:
        """Return the salted SHA1 hex digest of a message."""
        return hashlib.sha1(_to_bytes(message) + self._digest_salt.encode("utf-8")).hexdigest()

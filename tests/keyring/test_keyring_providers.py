"""Tests for the AES encryptors."""

import base64
import hashlib
import hmac

import pytest

from cachering.keyring.base import (
    HMAC_SIZE,
    EncryptionAlgorithm,
    Encryptor,
    InvalidAuthentication,
    Key,
    UnsupportedAlgorithm,
    generate_secret,
)
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

ALL_ENCRYPTORS = [AES128CBC, AES192CBC, AES256CBC, AES256GCM]


def make_key(encryptor, key_id=0):
    return Key(id=key_id, secret=generate_secret(encryptor.algorithm), size=encryptor.key_size)


@pytest.fixture
def sample_data():
    """Sample data for encryption tests."""
    return b"This is some test data for encryption!" * 10


@pytest.mark.parametrize("encryptor", ALL_ENCRYPTORS, ids=lambda e: e.algorithm.value)
class TestAllEncryptors:
    """Behaviour shared by every encryptor."""

    def test_encrypt_decrypt(self, encryptor, sample_data):
        """Test round trip."""
        key = make_key(encryptor)
        envelope = encryptor.encrypt(key, sample_data)

        assert isinstance(envelope, str)
        assert encryptor.decrypt(key, envelope) == sample_data

    def test_empty_plaintext(self, encryptor):
        """Empty plaintext round-trips."""
        key = make_key(encryptor)
        assert encryptor.decrypt(key, encryptor.encrypt(key, b"")) == b""

    def test_fresh_iv_per_call(self, encryptor):
        """Encrypting the same data twice gives different envelopes."""
        key = make_key(encryptor)
        first = base64.b64decode(encryptor.encrypt(key, b"42"))
        second = base64.b64decode(encryptor.encrypt(key, b"42"))

        iv_slice = slice(HMAC_SIZE, HMAC_SIZE + encryptor.iv_size)
        assert first[iv_slice] != second[iv_slice]
        assert first != second

    def test_wrong_key(self, encryptor):
        """A different key fails HMAC verification."""
        envelope = encryptor.encrypt(make_key(encryptor), b"secret")

        with pytest.raises(InvalidAuthentication, match=r"Expected HMAC to be .*?; got .*? instead"):
            encryptor.decrypt(make_key(encryptor), envelope)

    def test_tampered_ciphertext(self, encryptor):
        """Flipping a ciphertext bit fails verification."""
        key = make_key(encryptor)
        raw = bytearray(base64.b64decode(encryptor.encrypt(key, b"secret")))
        raw[-1] ^= 0x01

        with pytest.raises(InvalidAuthentication):
            encryptor.decrypt(key, base64.b64encode(bytes(raw)).decode())

    def test_invalid_base64(self, encryptor):
        """Non-base64 envelopes are rejected."""
        with pytest.raises(InvalidAuthentication, match="base64"):
            encryptor.decrypt(make_key(encryptor), "not base64!!")

    def test_truncated(self, encryptor):
        """Envelopes shorter than the header are rejected."""
        short = base64.b64encode(b"\x00" * HMAC_SIZE).decode()

        with pytest.raises(InvalidAuthentication, match="truncated"):
            encryptor.decrypt(make_key(encryptor), short)

    def test_satisfies_protocol(self, encryptor):
        """Encryptors satisfy the Encryptor protocol."""
        assert isinstance(encryptor, Encryptor)


class TestAesCbcEncryptor:
    """Tests for AesCbcEncryptor."""

    @pytest.mark.parametrize(
        "key_size, algorithm",
        [
            (16, EncryptionAlgorithm.AES_128_CBC),
            (24, EncryptionAlgorithm.AES_192_CBC),
            (32, EncryptionAlgorithm.AES_256_CBC),
        ],
    )
    def test_algorithm(self, key_size, algorithm):
        """Test algorithm selection by key size."""
        encryptor = AesCbcEncryptor(key_size=key_size)
        assert encryptor.algorithm == algorithm
        assert encryptor.key_size == key_size

    def test_unsupported_key_size(self):
        """Unsupported key sizes raise."""
        with pytest.raises(UnsupportedAlgorithm, match="aes-160-cbc"):
            AesCbcEncryptor(key_size=20)

    def test_envelope_layout(self):
        """Envelope is hmac || iv || padded ciphertext."""
        key = make_key(AES128CBC)
        raw = base64.b64decode(AES128CBC.encrypt(key, b"x" * 20))

        # 20 bytes pad to 32
        assert len(raw) == HMAC_SIZE + 16 + 32
        expected = hmac.new(key.signing_key, raw[HMAC_SIZE:], hashlib.sha256).digest()
        assert raw[:HMAC_SIZE] == expected

    def test_key_size_mismatch(self):
        """Keys built for another size are rejected."""
        key = make_key(AES256CBC)
        with pytest.raises(Exception, match="Invalid key size"):
            AES128CBC.encrypt(key, b"data")


class TestAesGcmEncryptor:
    """Tests for AesGcmEncryptor."""

    def test_envelope_layout(self):
        """Envelope is hmac || nonce || tag || ciphertext."""
        key = make_key(AES256GCM)
        raw = base64.b64decode(AES256GCM.encrypt(key, b"x" * 20))

        assert len(raw) == HMAC_SIZE + 12 + 16 + 20

    def test_tag_mismatch(self):
        """A re-signed envelope with a bad tag still fails."""
        key = make_key(AES256GCM)
        raw = bytearray(base64.b64decode(AES256GCM.encrypt(key, b"secret")))
        body = bytearray(raw[HMAC_SIZE:])
        body[12] ^= 0x01  # first tag byte
        signature = hmac.new(key.signing_key, bytes(body), hashlib.sha256).digest()
        forged = base64.b64encode(signature + bytes(body)).decode()

        with pytest.raises(InvalidAuthentication, match="Authentication failed"):
            AES256GCM.decrypt(key, forged)

    def test_algorithm(self):
        """Test algorithm property."""
        assert AesGcmEncryptor().algorithm == EncryptionAlgorithm.AES_256_GCM


class TestFactory:
    """Tests for encryptor lookup."""

    def test_get_by_name(self):
        """Names resolve case-insensitively."""
        assert get_encryptor("aes-128-cbc") is AES128CBC
        assert get_encryptor("AES-256-GCM") is AES256GCM

    def test_get_by_enum(self):
        """Enum members resolve."""
        assert get_encryptor(EncryptionAlgorithm.AES_192_CBC) is AES192CBC

    def test_instance_passthrough(self):
        """Instances are returned as-is."""
        custom = AesCbcEncryptor(32)
        assert get_encryptor(custom) is custom

    def test_unknown(self):
        """Unknown names raise with the available list."""
        with pytest.raises(UnsupportedAlgorithm) as exc_info:
            get_encryptor("rot13")

        assert exc_info.value.algorithm == "rot13"
        assert "aes-256-gcm" in exc_info.value.available

    def test_list_available(self):
        """All built-in algorithms are listed."""
        available = list_available_algorithms()
        for algorithm in EncryptionAlgorithm:
            assert algorithm.value in available

    def test_register(self):
        """Custom encryptors can be registered."""
        custom = AesCbcEncryptor(16)
        register_encryptor("Legacy-CBC", custom)

        assert get_encryptor("legacy-cbc") is custom
        assert isinstance(custom, BaseEncryptor)

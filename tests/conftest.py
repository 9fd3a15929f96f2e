"""Shared fixtures for keyring and cache tests."""

from __future__ import annotations

import pytest

from cachering.keyring import AES256GCM, Keyring

# 32-byte secrets (16-byte signing key + 16-byte AES-128 key)
SECRET_A = "uDiMcWVNTuz//naQ88sOcN+E40CyBRGzGTT7OkoBS6M="
SECRET_B = "60ds/tHrkZTWjFiy89z5vgKuKId0axhndfSjAKmBg+8="

# 64-byte secret for AES-256
SECRET_256 = (
    "VN8UXRVMNbIh9FWEFVde0q7GUA1SGOie1+FgAKlNYHcS3lqN0MwHxWjDg9dEUoPv"
    "6D9hSIbkYwIVbFbcKpnW5Q=="
)


@pytest.fixture
def keyring():
    """AES-128-CBC keyring with a single key (id 0)."""
    return Keyring({0: SECRET_A}, digest_salt="")


@pytest.fixture
def gcm_keyring():
    """AES-256-GCM keyring with a single key (id 1)."""
    return Keyring({1: SECRET_256}, digest_salt="salt", encryptor=AES256GCM)

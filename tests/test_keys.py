"""Tests for trustbadge.keys — issuer keypair handling."""

import base64
import hashlib

import pytest
from nacl.signing import SigningKey

from trustbadge.errors import KeyConfigError
from trustbadge.keys import KEY_ALGORITHM, KeyManager, derive_key_id


def test_key_id_is_sha256_prefix():
    sk = SigningKey.generate()
    public = bytes(sk.verify_key)
    km = KeyManager(bytes(sk))
    assert km.key_id == hashlib.sha256(public).digest()[:8].hex()
    assert len(km.key_id) == 16
    assert derive_key_id(public) == km.key_id


def test_public_key_derived_from_seed():
    sk = SigningKey.generate()
    km = KeyManager(bytes(sk))
    assert km.public_key == bytes(sk.verify_key)
    assert base64.b64decode(km.public_key_b64) == km.public_key


def test_matching_public_key_accepted():
    sk = SigningKey.generate()
    km = KeyManager(bytes(sk), bytes(sk.verify_key))
    assert km.public_key == bytes(sk.verify_key)


def test_mismatched_public_key_rejected():
    sk = SigningKey.generate()
    other = SigningKey.generate()
    with pytest.raises(KeyConfigError, match="does not match"):
        KeyManager(bytes(sk), bytes(other.verify_key))


def test_wrong_length_rejected():
    with pytest.raises(KeyConfigError, match="32 bytes"):
        KeyManager(b"\x01" * 16)


def test_from_base64():
    sk = SigningKey.generate()
    km = KeyManager.from_base64(
        base64.b64encode(bytes(sk)).decode(),
        base64.b64encode(bytes(sk.verify_key)).decode(),
    )
    assert km.public_key == bytes(sk.verify_key)


def test_from_base64_missing_key():
    with pytest.raises(KeyConfigError, match="Missing"):
        KeyManager.from_base64("")


def test_from_base64_garbage():
    with pytest.raises(KeyConfigError, match="base64"):
        KeyManager.from_base64("not*base64!")


def test_public_info(keys):
    info = keys.public_info()
    assert info == {
        "key_id": keys.key_id,
        "public_key": keys.public_key_b64,
        "algorithm": KEY_ALGORITHM,
    }


def test_repr_hides_private_material(keys):
    assert keys.key_id in repr(keys)
    assert base64.b64encode(bytes(keys.signing_key())).decode() not in repr(keys)

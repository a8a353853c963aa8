"""trustbadge.keys — The issuer's single active Ed25519 keypair.

A KeyManager is constructed once at process start from configured key
material and passed explicitly to the signer and the lifecycle manager.
It never generates keys; see ``trustbadge keygen`` for that.
"""

import base64
import binascii
import hashlib
from typing import Optional

from nacl.exceptions import CryptoError
from nacl.signing import SigningKey, VerifyKey

from trustbadge.errors import KeyConfigError

KEY_ALGORITHM = "Ed25519"


def derive_key_id(public_key: bytes) -> str:
    """First 8 bytes of SHA-256(public key), hex encoded (16 chars)."""
    return hashlib.sha256(public_key).digest()[:8].hex()


def decode_key_b64(value: str, what: str) -> bytes:
    try:
        return base64.b64decode(value.strip(), validate=True)
    except (binascii.Error, ValueError, AttributeError) as e:
        raise KeyConfigError(f"{what} is not valid base64") from e


class KeyManager:
    """Holds one Ed25519 keypair and its derived key id.

    Read-only after construction; safe for any number of concurrent readers.
    """

    def __init__(self, private_key: bytes, public_key: Optional[bytes] = None):
        if len(private_key) != 32:
            raise KeyConfigError(
                f"Ed25519 private key must be 32 bytes, got {len(private_key)}"
            )
        try:
            self._signing_key = SigningKey(private_key)
        except (CryptoError, TypeError, ValueError) as e:
            raise KeyConfigError(f"Invalid Ed25519 private key: {e}") from e

        derived = bytes(self._signing_key.verify_key)
        if public_key is not None and bytes(public_key) != derived:
            raise KeyConfigError("Configured public key does not match the private key")

        self._verify_key = self._signing_key.verify_key
        self._public_key = derived
        self._key_id = derive_key_id(derived)

    @classmethod
    def from_base64(cls, private_key_b64: str,
                    public_key_b64: Optional[str] = None) -> "KeyManager":
        """Load from base64 strings as stored in the environment."""
        if not private_key_b64:
            raise KeyConfigError("Missing Ed25519 private key")
        private_key = decode_key_b64(private_key_b64, "Private key")
        public_key = decode_key_b64(public_key_b64, "Public key") if public_key_b64 else None
        return cls(private_key, public_key)

    @property
    def key_id(self) -> str:
        return self._key_id

    @property
    def public_key(self) -> bytes:
        return self._public_key

    @property
    def public_key_b64(self) -> str:
        return base64.b64encode(self._public_key).decode("ascii")

    @property
    def verify_key(self) -> VerifyKey:
        return self._verify_key

    def signing_key(self) -> SigningKey:
        """Private key handle. Only the BadgeSigner should call this."""
        return self._signing_key

    def public_info(self) -> dict:
        """Public key descriptor for external verifiers."""
        return {
            "key_id": self.key_id,
            "public_key": self.public_key_b64,
            "algorithm": KEY_ALGORITHM,
        }

    def __repr__(self):
        return f"KeyManager(key_id={self.key_id})"

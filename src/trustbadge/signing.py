"""trustbadge.signing — Ed25519 signatures over canonical payload bytes."""

import base64
import binascii
import logging
from typing import Any, Union

from nacl.exceptions import BadSignatureError, CryptoError
from nacl.signing import VerifyKey

from trustbadge.canonical import encode
from trustbadge.keys import KeyManager

logger = logging.getLogger("trustbadge.signing")

SIGNATURE_LENGTH = 64


class BadgeSigner:
    """Signs and verifies payloads with the issuer's keypair."""

    def __init__(self, keys: KeyManager):
        self._keys = keys

    @property
    def key_id(self) -> str:
        return self._keys.key_id

    def sign(self, payload: Any) -> str:
        """Return the base64 Ed25519 signature of canonical(payload)."""
        message = encode(payload)
        signature = self._keys.signing_key().sign(message).signature
        return base64.b64encode(signature).decode("ascii")

    def verify(self, payload: Any, signature: str) -> bool:
        """Verify against the currently configured public key."""
        return verify_signature(payload, signature, self._keys.verify_key)


def verify_signature(payload: Any, signature: str,
                     public_key: Union[bytes, str, VerifyKey]) -> bool:
    """Check an Ed25519 signature over canonical(payload).

    ``public_key`` may be raw bytes, a base64 string or a VerifyKey.
    Never raises: any malformed input or mismatch returns False.
    """
    try:
        if isinstance(public_key, VerifyKey):
            vk = public_key
        elif isinstance(public_key, str):
            vk = VerifyKey(base64.b64decode(public_key, validate=True))
        else:
            vk = VerifyKey(bytes(public_key))

        if not isinstance(signature, str):
            return False
        sig = base64.b64decode(signature, validate=True)
        if len(sig) != SIGNATURE_LENGTH:
            return False

        vk.verify(encode(payload), sig)
        return True
    except BadSignatureError:
        return False
    except (CryptoError, binascii.Error, TypeError, ValueError) as e:
        logger.debug("Signature verification error: %s", type(e).__name__)
        return False

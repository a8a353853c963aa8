#!/usr/bin/env python3
"""
trustbadge.portable — Portable badge JSON and offline verification.

A portable badge is the wire object handed to a subject at issuance:

    {"badge_token", "payload": {...}, "signature", "public_key_id",
     "issued_at", "expires_at"}

Anyone holding the issuer's published public key can check the signature and
the validity window without contacting the issuer. Revocation cannot be seen
offline; verifiers that care must re-check with the issuer.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from trustbadge.errors import ValidationError
from trustbadge.keys import KeyManager, derive_key_id, decode_key_b64
from trustbadge.models import (
    PAYLOAD_FIELDS,
    Badge,
    VerificationOutcome,
    VerificationResult,
    from_unix,
    utcnow,
)
from trustbadge.signing import verify_signature

REQUIRED_FIELDS = ("badge_token", "payload", "signature", "public_key_id")


@dataclass
class PortableBadge:
    """Badge in wire format (plain data, nothing trusted yet)."""
    badge_token: str
    payload: dict
    signature: str
    public_key_id: str
    issued_at: str = ""
    expires_at: str = ""
    score_breakdown: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "PortableBadge":
        if not isinstance(data, dict):
            raise ValidationError("Badge must be a JSON object", reason="invalid_badge")
        missing = [f for f in REQUIRED_FIELDS if f not in data]
        if missing:
            raise ValidationError(
                f"Badge missing fields: {', '.join(missing)}", reason="invalid_badge"
            )
        if not isinstance(data["payload"], dict):
            raise ValidationError("Badge payload must be an object", reason="invalid_badge")
        return cls(
            badge_token=data["badge_token"],
            payload=data["payload"],
            signature=data["signature"],
            public_key_id=data["public_key_id"],
            issued_at=data.get("issued_at", ""),
            expires_at=data.get("expires_at", ""),
            score_breakdown=data.get("score_breakdown") or {},
        )

    @classmethod
    def from_badge(cls, badge: Badge) -> "PortableBadge":
        return cls.from_dict(badge.to_wire(include_breakdown=True))

    def to_dict(self) -> dict:
        data = {
            "badge_token": self.badge_token,
            "payload": self.payload,
            "signature": self.signature,
            "public_key_id": self.public_key_id,
            "issued_at": self.issued_at,
            "expires_at": self.expires_at,
        }
        if self.score_breakdown:
            data["score_breakdown"] = self.score_breakdown
        return data


def badge_to_json(badge: Union[Badge, PortableBadge]) -> str:
    if isinstance(badge, Badge):
        badge = PortableBadge.from_badge(badge)
    return json.dumps(badge.to_dict(), indent=2)


def badge_from_json(data: str) -> PortableBadge:
    try:
        raw = json.loads(data)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Badge is not valid JSON: {e.msg}", reason="invalid_badge") from e
    return PortableBadge.from_dict(raw)


def verify_offline(badge: Union[PortableBadge, dict],
                   public_key: Union[str, bytes, KeyManager],
                   now: Optional[datetime] = None) -> VerificationResult:
    """Verify a portable badge with only the issuer's public key.

    Checks, in order: payload expiry, token binding, key id, signature.
    """
    if isinstance(badge, dict):
        badge = PortableBadge.from_dict(badge)
    if isinstance(public_key, KeyManager):
        public_key = public_key.public_key
    elif isinstance(public_key, str):
        public_key = decode_key_b64(public_key, "Public key")

    payload = badge.payload
    if any(f not in payload for f in PAYLOAD_FIELDS):
        return VerificationResult(VerificationOutcome.INVALID_SIGNATURE,
                                  message="Payload is incomplete")

    try:
        expires_at = from_unix(int(payload["exp"]))
        issued_at = from_unix(int(payload["iat"]))
    except (TypeError, ValueError, OverflowError, OSError):
        return VerificationResult(VerificationOutcome.INVALID_SIGNATURE,
                                  message="Payload timestamps are malformed")

    if (now or utcnow()) > expires_at:
        return VerificationResult(VerificationOutcome.EXPIRED,
                                  message="Badge has expired", expires_at=expires_at)

    if payload["badge_token"] != badge.badge_token:
        return VerificationResult(VerificationOutcome.INVALID_SIGNATURE,
                                  message="Badge token does not match payload")

    if badge.public_key_id != derive_key_id(public_key):
        return VerificationResult(VerificationOutcome.INVALID_SIGNATURE,
                                  message="Badge was signed with a different key")

    if not verify_signature(payload, badge.signature, public_key):
        return VerificationResult(VerificationOutcome.INVALID_SIGNATURE,
                                  message="Signature verification failed")

    return VerificationResult(
        VerificationOutcome.VALID,
        message="Signature valid; revocation not checked offline",
        trust_score=payload["trust_score"],
        issued_at=issued_at,
        expires_at=expires_at,
    )

"""trustbadge.models — Data structures for anchors, badges and verification.

All wire conversion goes through ``to_dict``/``from_dict``. Timestamps are
timezone-aware UTC datetimes in memory, ISO-8601 strings on the wire, and
whole unix seconds inside the signed payload.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from trustbadge.errors import ValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return dt.astimezone(timezone.utc).isoformat()


def parse_iso(value: Any) -> Optional[datetime]:
    """Accept a datetime or ISO-8601 string (``Z`` suffix allowed)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError as e:
            raise ValidationError(f"Invalid timestamp: {value!r}", reason="invalid_timestamp") from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def from_unix(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


# ─── Identity Anchors ──────────────────────────────────────────────

@dataclass(frozen=True)
class IdentityAnchor:
    """A verified link to an external identity provider. Read-only here."""
    provider: str
    is_edu_verified: bool = False
    provider_account_created_at: Optional[datetime] = None
    connection_count: Optional[int] = None
    email_address: Optional[str] = None
    connected_at: Optional[datetime] = None
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        provider = self.provider.strip().lower() if isinstance(self.provider, str) else ""
        if not provider:
            raise ValidationError("Anchor is missing a provider", reason="invalid_anchor")
        if not isinstance(self.is_edu_verified, bool):
            raise ValidationError(
                f"is_edu_verified must be a boolean, got {self.is_edu_verified!r}",
                reason="invalid_anchor",
            )
        # Provider names compare case-insensitively everywhere.
        object.__setattr__(self, "provider", provider)

    def to_dict(self) -> dict:
        return {
            "provider": self.provider,
            "is_edu_verified": self.is_edu_verified,
            "provider_account_created_at": to_iso(self.provider_account_created_at),
            "connection_count": self.connection_count,
            "email_address": self.email_address,
            "connected_at": to_iso(self.connected_at),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "IdentityAnchor":
        edu = data.get("is_edu_verified")
        created = data.get("provider_account_created_at", data.get("account_created_at"))
        return cls(
            provider=data.get("provider"),
            is_edu_verified=False if edu is None else edu,
            provider_account_created_at=parse_iso(created),
            connection_count=data.get("connection_count"),
            email_address=data.get("email_address"),
            connected_at=parse_iso(data.get("connected_at")),
            metadata=dict(data.get("metadata") or {}),
        )


# ─── Badge ─────────────────────────────────────────────────────────

PAYLOAD_FIELDS = ("sub", "iss", "iat", "exp", "trust_score", "badge_token", "edu_verified")


@dataclass(frozen=True)
class BadgePayload:
    """The signed claim. Any change to any field invalidates the signature."""
    sub: str
    iss: str
    iat: int
    exp: int
    trust_score: int
    badge_token: str
    edu_verified: bool

    def to_dict(self) -> dict:
        return {
            "sub": self.sub,
            "iss": self.iss,
            "iat": self.iat,
            "exp": self.exp,
            "trust_score": self.trust_score,
            "badge_token": self.badge_token,
            "edu_verified": self.edu_verified,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BadgePayload":
        missing = [f for f in PAYLOAD_FIELDS if f not in data]
        if missing:
            raise ValidationError(
                f"Badge payload missing fields: {', '.join(missing)}",
                reason="invalid_payload",
            )
        return cls(**{f: data[f] for f in PAYLOAD_FIELDS})


@dataclass
class Badge:
    """A persisted badge: signed payload plus issuance and revocation state.

    ``revoked_at`` is set at most once and never cleared.
    """
    payload: BadgePayload
    signature: str
    public_key_id: str
    issued_at: datetime
    expires_at: datetime
    score_breakdown: dict = field(default_factory=dict)
    revoked_at: Optional[datetime] = None
    revocation_reason: Optional[str] = None

    def __post_init__(self):
        if self.expires_at <= self.issued_at:
            raise ValidationError("Badge must expire after it is issued", reason="invalid_validity")

    @property
    def badge_token(self) -> str:
        return self.payload.badge_token

    @property
    def subject_id(self) -> str:
        return self.payload.sub

    @property
    def trust_score(self) -> int:
        return self.payload.trust_score

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) > self.expires_at

    def is_active(self, now: Optional[datetime] = None) -> bool:
        return not self.is_revoked and not self.is_expired(now)

    def status(self, now: Optional[datetime] = None) -> str:
        if self.is_revoked:
            return "revoked"
        if self.is_expired(now):
            return "expired"
        return "active"

    def to_wire(self, include_breakdown: bool = False) -> dict:
        """Portable badge as handed to the subject."""
        wire = {
            "badge_token": self.badge_token,
            "payload": self.payload.to_dict(),
            "signature": self.signature,
            "public_key_id": self.public_key_id,
            "issued_at": to_iso(self.issued_at),
            "expires_at": to_iso(self.expires_at),
        }
        if include_breakdown:
            wire["score_breakdown"] = self.score_breakdown
        return wire

    def to_record(self) -> dict:
        """Full stored state, including revocation fields."""
        record = self.to_wire(include_breakdown=True)
        record["revoked_at"] = to_iso(self.revoked_at)
        record["revocation_reason"] = self.revocation_reason
        return record

    @classmethod
    def from_record(cls, data: dict) -> "Badge":
        return cls(
            payload=BadgePayload.from_dict(data["payload"]),
            signature=data["signature"],
            public_key_id=data["public_key_id"],
            issued_at=parse_iso(data["issued_at"]),
            expires_at=parse_iso(data["expires_at"]),
            score_breakdown=dict(data.get("score_breakdown") or {}),
            revoked_at=parse_iso(data.get("revoked_at")),
            revocation_reason=data.get("revocation_reason"),
        )

    def summary(self) -> dict:
        """Listing view, without the signature."""
        return {
            "badge_token": self.badge_token,
            "trust_score": self.trust_score,
            "score_breakdown": self.score_breakdown,
            "issued_at": to_iso(self.issued_at),
            "expires_at": to_iso(self.expires_at),
        }


# ─── Verification ──────────────────────────────────────────────────

class VerificationOutcome(str, Enum):
    VALID = "valid"
    EXPIRED = "expired"
    REVOKED = "revoked"
    INVALID_SIGNATURE = "invalid_signature"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class VerifierContext:
    """Who asked. Every field is optional and informational only."""
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    platform_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {"ip": self.ip, "user_agent": self.user_agent, "platform_id": self.platform_id}


@dataclass
class VerificationResult:
    """Outcome of a verification. Failures are values, not exceptions."""
    outcome: VerificationOutcome
    message: str = ""
    trust_score: Optional[int] = None
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    revocation_reason: Optional[str] = None

    @property
    def valid(self) -> bool:
        return self.outcome is VerificationOutcome.VALID

    @property
    def reason(self) -> Optional[str]:
        return None if self.valid else self.outcome.value

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"valid": self.valid}
        if not self.valid:
            data["reason"] = self.outcome.value
        if self.message:
            data["message"] = self.message
        optional = {
            "trust_score": self.trust_score,
            "issued_at": to_iso(self.issued_at),
            "expires_at": to_iso(self.expires_at),
            "revoked_at": to_iso(self.revoked_at),
            "revocation_reason": self.revocation_reason,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data


@dataclass(frozen=True)
class VerificationRecord:
    """One append-only audit entry."""
    badge_ref: str
    result: VerificationOutcome
    context: VerifierContext = field(default_factory=VerifierContext)
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "badge_ref": self.badge_ref,
            "result": self.result.value,
            "context": self.context.to_dict(),
            "timestamp": to_iso(self.timestamp),
        }


@dataclass(frozen=True)
class RevokeResult:
    revoked: bool
    badge_token: str
    message: str = ""

    def to_dict(self) -> dict:
        return {"revoked": self.revoked, "message": self.message}

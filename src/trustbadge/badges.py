"""
trustbadge.badges — Badge lifecycle: issue, verify, revoke, list.

State machine per badge:

    active --(now > expires_at)--> expired    derived, never stored
    active --(revoke)-----------> revoked     stored, terminal

Verification answers with a VerificationResult value for every routine
failure. Only store faults (unreachable, timeout) raise, since then no answer
can be given at all.
"""

import asyncio
import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar

from trustbadge.audit import VerificationAuditLog
from trustbadge.config import DEFAULT_EXPIRY_DAYS, DEFAULT_ISSUER, DEFAULT_STORE_TIMEOUT, Settings
from trustbadge.errors import NoAnchorsError, StoreTimeoutError, StoreUnavailableError, ValidationError
from trustbadge.keys import KeyManager
from trustbadge.models import (
    Badge,
    BadgePayload,
    RevokeResult,
    VerificationOutcome,
    VerificationResult,
    VerifierContext,
    utcnow,
)
from trustbadge.scoring import AnchorLike, ScoreResult, TrustScoreEngine
from trustbadge.signing import BadgeSigner
from trustbadge.storage import AnchorStore, BadgeStore

logger = logging.getLogger("trustbadge.badges")

T = TypeVar("T")

TOKEN_BYTES = 32
DEFAULT_REVOCATION_REASON = "Manual revocation"
DEFAULT_BULK_REVOCATION_REASON = "User-initiated revocation"


def generate_badge_token(nbytes: int = TOKEN_BYTES) -> str:
    """Cryptographically random, non-sequential token (hex)."""
    return secrets.token_hex(nbytes)


class BadgeLifecycleManager:
    """Issues, verifies and revokes badges for a single issuer key."""

    def __init__(
        self,
        keys: KeyManager,
        badge_store: BadgeStore,
        *,
        anchor_store: Optional[AnchorStore] = None,
        audit: Optional[VerificationAuditLog] = None,
        engine: Optional[TrustScoreEngine] = None,
        issuer: str = DEFAULT_ISSUER,
        validity: timedelta = timedelta(days=DEFAULT_EXPIRY_DAYS),
        store_timeout: float = DEFAULT_STORE_TIMEOUT,
        clock: Callable[[], datetime] = utcnow,
    ):
        if validity <= timedelta(0):
            raise ValueError("Validity window must be positive")
        self.keys = keys
        self.signer = BadgeSigner(keys)
        self.badges = badge_store
        self.anchors = anchor_store
        self.audit = audit if audit is not None else VerificationAuditLog()
        self.engine = engine or TrustScoreEngine()
        self.issuer = issuer
        self.validity = validity
        self.store_timeout = store_timeout
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, keys: KeyManager, badge_store: BadgeStore,
                      **kwargs) -> "BadgeLifecycleManager":
        kwargs.setdefault("audit", VerificationAuditLog(timeout=settings.audit_timeout))
        return cls(
            keys,
            badge_store,
            issuer=settings.issuer,
            validity=settings.validity_window,
            store_timeout=settings.store_timeout,
            **kwargs,
        )

    def _now(self) -> datetime:
        # Whole seconds, so issued_at/expires_at match iat/exp exactly.
        return self._clock().replace(microsecond=0)

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.store_timeout)
        except asyncio.TimeoutError:
            logger.error("Store %s timed out", operation,
                         extra={"event": "store_timeout", "operation": operation})
            raise StoreTimeoutError(operation, self.store_timeout) from None

    # ─── Issue ─────────────────────────────────────────────────────

    async def issue(self, subject_id: str, anchors: Iterable[AnchorLike]) -> Badge:
        """Score the anchors, sign a fresh badge, persist it and return it.

        Not idempotent: every call yields a new, independently valid badge.
        """
        if not subject_id or not isinstance(subject_id, str):
            raise ValidationError("subject_id is required", reason="invalid_subject")
        anchors = list(anchors or [])
        if not anchors:
            raise NoAnchorsError(subject_id)

        scored = self.engine.compute(anchors)
        issued_at = self._now()
        expires_at = issued_at + self.validity

        payload = BadgePayload(
            sub=subject_id,
            iss=self.issuer,
            iat=int(issued_at.timestamp()),
            exp=int(expires_at.timestamp()),
            trust_score=scored.score,
            badge_token=generate_badge_token(),
            edu_verified=scored.edu_verified,
        )
        badge = Badge(
            payload=payload,
            signature=self.signer.sign(payload),
            public_key_id=self.keys.key_id,
            issued_at=issued_at,
            expires_at=expires_at,
            score_breakdown=scored.breakdown,
        )
        await self._call("put", self.badges.put(badge))

        logger.info("Badge issued", extra={
            "event": "badge_issued",
            "trust_score": scored.score,
            "key_id": self.keys.key_id,
        })
        return badge

    async def issue_for(self, subject_id: str) -> Badge:
        """Fetch current anchors from the anchor store, then issue."""
        anchors = await self._get_anchors(subject_id)
        return await self.issue(subject_id, anchors)

    async def score(self, subject_id: str) -> ScoreResult:
        """Current score for a subject, without issuing anything."""
        anchors = await self._get_anchors(subject_id)
        return self.engine.compute(anchors)

    async def _get_anchors(self, subject_id: str) -> list:
        if self.anchors is None:
            raise StoreUnavailableError("No anchor store configured")
        return await self._call("get_anchors", self.anchors.get_anchors(subject_id))

    # ─── Verify ────────────────────────────────────────────────────

    async def verify(self, badge_token: str, payload: Any, signature: str,
                     context: Optional[VerifierContext] = None) -> VerificationResult:
        """Check a presented badge against stored state and the issuer key.

        First matching condition wins: not_found, revoked, expired,
        invalid_signature, otherwise valid. Expiry is decided before any
        signature work.
        """
        badge = await self._call("get", self.badges.get(badge_token)) if badge_token else None
        now = self._clock()
        result = self._evaluate(badge, badge_token, payload, signature, now)

        await self.audit.record(badge_token or "", result.outcome, context, timestamp=now)
        logger.info("Badge verification: %s", result.outcome.value,
                    extra={"event": "badge_verified", "outcome": result.outcome.value})
        return result

    def _evaluate(self, badge: Optional[Badge], badge_token: str,
                  payload: Any, signature: str, now: datetime) -> VerificationResult:
        if badge is None:
            return VerificationResult(VerificationOutcome.NOT_FOUND, message="Badge does not exist")

        if badge.is_revoked:
            return VerificationResult(
                VerificationOutcome.REVOKED,
                message=f"Badge was revoked: {badge.revocation_reason or 'No reason provided'}",
                revoked_at=badge.revoked_at,
                revocation_reason=badge.revocation_reason,
            )

        if now > badge.expires_at:
            return VerificationResult(
                VerificationOutcome.EXPIRED,
                message="Badge has expired",
                expires_at=badge.expires_at,
            )

        if not self._signature_matches(badge_token, payload, signature):
            return VerificationResult(
                VerificationOutcome.INVALID_SIGNATURE,
                message="Signature verification failed",
            )

        return VerificationResult(
            VerificationOutcome.VALID,
            trust_score=badge.trust_score,
            issued_at=badge.issued_at,
            expires_at=badge.expires_at,
        )

    def _signature_matches(self, badge_token: str, payload: Any, signature: str) -> bool:
        if isinstance(payload, BadgePayload):
            payload = payload.to_dict()
        if not isinstance(payload, dict):
            return False
        # A genuine signature over some other badge must not vouch for this token.
        if payload.get("badge_token") != badge_token:
            return False
        return self.signer.verify(payload, signature)

    # ─── Revoke ────────────────────────────────────────────────────

    async def revoke(self, badge_token: str, reason: Optional[str] = None) -> RevokeResult:
        """Revoke once. Missing or already-revoked badges are a no-op."""
        reason = reason or DEFAULT_REVOCATION_REASON
        revoked = None
        if badge_token:
            revoked = await self._call(
                "conditional_revoke",
                self.badges.conditional_revoke(badge_token, reason, self._clock()),
            )
        if revoked is None:
            return RevokeResult(False, badge_token or "", "Badge not found or already revoked")

        logger.info("Badge revoked", extra={"event": "badge_revoked", "reason": reason})
        return RevokeResult(True, badge_token, "Badge revoked successfully")

    async def revoke_all(self, subject_id: str, reason: Optional[str] = None) -> int:
        """Revoke every unrevoked badge of a subject. Returns how many changed."""
        reason = reason or DEFAULT_BULK_REVOCATION_REASON
        count = await self._call(
            "revoke_all_for_subject",
            self.badges.revoke_all_for_subject(subject_id, reason, self._clock()),
        )
        if count:
            logger.info("Revoked %d badge(s) for subject", count,
                        extra={"event": "badges_revoked", "count": count})
        return count

    # ─── Queries ───────────────────────────────────────────────────

    async def list_active(self, subject_id: str) -> list[Badge]:
        """Unrevoked, unexpired badges, most recently issued first."""
        now = self._clock()
        badges = await self._call("list_for_subject", self.badges.list_for_subject(subject_id))
        return [b for b in badges if b.is_active(now)]

    def public_key(self) -> dict:
        return self.keys.public_info()

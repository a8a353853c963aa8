"""trustbadge — Signed, time-limited trust badges from verified identity anchors."""

__version__ = "0.1.0"

from trustbadge.errors import (
    TrustBadgeError, ValidationError, NoAnchorsError, KeyConfigError,
    StoreError, StoreUnavailableError, StoreTimeoutError,
)
from trustbadge.canonical import canonicalize
from trustbadge.keys import KeyManager, derive_key_id
from trustbadge.signing import BadgeSigner, verify_signature
from trustbadge.models import (
    IdentityAnchor, BadgePayload, Badge,
    VerificationOutcome, VerificationResult, VerifierContext,
    VerificationRecord, RevokeResult,
)
from trustbadge.scoring import (
    TrustScoreEngine, ScoreResult, ClearanceTier, CLEARANCE_TIERS,
    clearance_for, compute_score, scoring_weights, is_educational_email,
)
from trustbadge.storage import AnchorStore, BadgeStore, MemoryAnchorStore, MemoryBadgeStore
from trustbadge.audit import AuditSink, MemoryAuditSink, VerificationAuditLog
from trustbadge.config import Settings
from trustbadge.badges import BadgeLifecycleManager, generate_badge_token
from trustbadge.portable import PortableBadge, verify_offline

__all__ = [
    "__version__",
    "TrustBadgeError",
    "ValidationError",
    "NoAnchorsError",
    "KeyConfigError",
    "StoreError",
    "StoreUnavailableError",
    "StoreTimeoutError",
    "canonicalize",
    "KeyManager",
    "derive_key_id",
    "BadgeSigner",
    "verify_signature",
    "IdentityAnchor",
    "BadgePayload",
    "Badge",
    "VerificationOutcome",
    "VerificationResult",
    "VerifierContext",
    "VerificationRecord",
    "RevokeResult",
    "TrustScoreEngine",
    "ScoreResult",
    "ClearanceTier",
    "CLEARANCE_TIERS",
    "clearance_for",
    "compute_score",
    "scoring_weights",
    "is_educational_email",
    "AnchorStore",
    "BadgeStore",
    "MemoryAnchorStore",
    "MemoryBadgeStore",
    "AuditSink",
    "MemoryAuditSink",
    "VerificationAuditLog",
    "Settings",
    "BadgeLifecycleManager",
    "generate_badge_token",
    "PortableBadge",
    "verify_offline",
]

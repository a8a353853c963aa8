"""trustbadge.scoring — Trust score from connected identity anchors.

Point weights:
    base          20  — at least one anchor connected
    gmail         25  — Gmail OAuth connected
    linkedin      30  — LinkedIn OAuth connected
    edu_bonus     25  — Gmail anchor flagged as a verified institutional email

The weights sum to exactly MAX_SCORE. The score is a pure function of which
providers are present and their verified flags: no I/O, no hidden state, and
the same result for any ordering of the same anchors.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

from trustbadge.models import IdentityAnchor

MAX_SCORE = 100

DEFAULT_WEIGHTS = {
    "base": 20,
    "gmail": 25,
    "linkedin": 30,
    "edu_bonus": 25,
}

LABELS = {
    "base": "Account Presence",
    "gmail": "Gmail Connected",
    "linkedin": "LinkedIn Connected",
    "edu_bonus": "Educational Email Verified",
}

# Providers that score on presence, and those that can carry the edu bonus.
SCORED_PROVIDERS = ("gmail", "linkedin")
EMAIL_PROVIDERS = frozenset({"gmail"})

_EDU_DOMAIN = re.compile(r"\.(edu|edu\.[a-z]{2}|ac\.[a-z]{2})$", re.IGNORECASE)


def is_educational_email(email: Optional[str]) -> bool:
    """True for .edu, .edu.xx and .ac.xx addresses.

    Upstream anchor producers use this to decide ``is_edu_verified``; the
    score itself only reads the flag.
    """
    if not email or "@" not in email:
        return False
    domain = email.lower().rsplit("@", 1)[1]
    return bool(domain) and bool(_EDU_DOMAIN.search(domain))


# ─── Clearance Tiers ───────────────────────────────────────────────

@dataclass(frozen=True)
class ClearanceTier:
    level: str
    title: str
    color: str
    rank: int
    min_score: int

    def to_dict(self) -> dict:
        return {"level": self.level, "title": self.title, "color": self.color, "rank": self.rank}


# Ordered by min_score; lower edge inclusive. [0,50) [50,75) [75,100) {100}
CLEARANCE_TIERS = (
    ClearanceTier("spectator", "Spectator", "#9CA3AF", 0, 0),
    ClearanceTier("verified", "Verified", "#3B82F6", 1, 50),
    ClearanceTier("trusted", "Trusted", "#10B981", 2, 75),
    ClearanceTier("elite", "Elite", "#F59E0B", 3, MAX_SCORE),
)


def clearance_for(score: int) -> ClearanceTier:
    """Map any score to exactly one tier. Out-of-range input is clamped."""
    score = max(0, min(int(score), MAX_SCORE))
    tier = CLEARANCE_TIERS[0]
    for candidate in CLEARANCE_TIERS:
        if score >= candidate.min_score:
            tier = candidate
    return tier


# ─── Score Engine ──────────────────────────────────────────────────

@dataclass
class ScoreResult:
    score: int
    breakdown: dict
    edu_verified: bool
    clearance: ClearanceTier = field(default_factory=lambda: CLEARANCE_TIERS[0])

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "breakdown": self.breakdown,
            "edu_verified": self.edu_verified,
            "clearance": self.clearance.to_dict(),
        }


AnchorLike = Union[IdentityAnchor, dict]


class TrustScoreEngine:
    """Computes capped 0-100 scores from identity anchors."""

    def __init__(self, weights: Optional[dict[str, int]] = None):
        weights = dict(DEFAULT_WEIGHTS if weights is None else weights)
        if set(weights) != set(DEFAULT_WEIGHTS):
            raise ValueError(f"Weights must define exactly {sorted(DEFAULT_WEIGHTS)}")
        if any(w < 0 for w in weights.values()):
            raise ValueError("Weights must be non-negative")
        total = sum(weights.values())
        if total != MAX_SCORE:
            raise ValueError(f"Weights must sum to {MAX_SCORE}, got {total}")
        self.weights = weights

    def compute(self, anchors: Iterable[AnchorLike]) -> ScoreResult:
        normalized = [
            a if isinstance(a, IdentityAnchor) else IdentityAnchor.from_dict(a)
            for a in (anchors or [])
        ]
        breakdown = {
            name: {"score": 0, "label": LABELS[name]} for name in DEFAULT_WEIGHTS
        }

        if not normalized:
            return ScoreResult(score=0, breakdown=breakdown, edu_verified=False,
                               clearance=clearance_for(0))

        providers = {a.provider for a in normalized}
        breakdown["base"]["score"] = self.weights["base"]
        for provider in SCORED_PROVIDERS:
            if provider in providers:
                breakdown[provider]["score"] = self.weights[provider]

        edu_verified = any(
            a.is_edu_verified for a in normalized if a.provider in EMAIL_PROVIDERS
        )
        if edu_verified:
            breakdown["edu_bonus"]["score"] = self.weights["edu_bonus"]

        raw = sum(part["score"] for part in breakdown.values())
        score = max(0, min(raw, MAX_SCORE))
        return ScoreResult(
            score=score,
            breakdown=breakdown,
            edu_verified=edu_verified,
            clearance=clearance_for(score),
        )

    def scoring_weights(self) -> dict[str, int]:
        return dict(self.weights)


_default_engine = TrustScoreEngine()


def compute_score(anchors: Iterable[AnchorLike]) -> ScoreResult:
    """Score with the default weight table."""
    return _default_engine.compute(anchors)


def scoring_weights() -> dict[str, int]:
    return _default_engine.scoring_weights()

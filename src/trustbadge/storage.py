"""
trustbadge.storage — Store interfaces consumed by the badge engine.

Interfaces: AnchorStore, BadgeStore
In-memory backends: MemoryAnchorStore, MemoryBadgeStore (tests, single process)
PostgreSQL backends live in trustbadge.database.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from trustbadge.errors import ValidationError
from trustbadge.models import Badge, IdentityAnchor


# ─── Abstract Stores ───────────────────────────────────────────────

class AnchorStore(ABC):
    """Source of a subject's identity anchors (fed by OAuth integrations)."""

    @abstractmethod
    async def get_anchors(self, subject_id: str) -> list[IdentityAnchor]: ...


class BadgeStore(ABC):
    """Badge persistence keyed by badge_token."""

    @abstractmethod
    async def get(self, badge_token: str) -> Optional[Badge]: ...

    @abstractmethod
    async def put(self, badge: Badge) -> None:
        """Insert a new badge. Raises ValidationError on a duplicate token."""

    @abstractmethod
    async def conditional_revoke(self, badge_token: str, reason: str,
                                 revoked_at: datetime) -> Optional[Badge]:
        """Atomically set revoked_at where it is still null.

        Returns the revoked badge, or None when the badge is missing or was
        already revoked.
        """

    @abstractmethod
    async def list_for_subject(self, subject_id: str) -> list[Badge]:
        """All badges of a subject, most recently issued first."""

    @abstractmethod
    async def revoke_all_for_subject(self, subject_id: str, reason: str,
                                     revoked_at: datetime) -> int:
        """Conditionally revoke every unrevoked badge of a subject."""


# ─── Memory Backends ───────────────────────────────────────────────

class MemoryAnchorStore(AnchorStore):
    """In-memory anchors, one per (subject, provider)."""

    def __init__(self):
        self._anchors: dict[str, dict[str, IdentityAnchor]] = {}

    def connect(self, subject_id: str, anchor: IdentityAnchor) -> None:
        """Upsert: a second anchor for the same provider replaces the first."""
        self._anchors.setdefault(subject_id, {})[anchor.provider] = anchor

    def disconnect(self, subject_id: str, provider: str) -> bool:
        return self._anchors.get(subject_id, {}).pop(provider, None) is not None

    async def get_anchors(self, subject_id: str) -> list[IdentityAnchor]:
        return list(self._anchors.get(subject_id, {}).values())


class MemoryBadgeStore(BadgeStore):
    """In-memory badge table. Stores serialized records, never live objects."""

    def __init__(self):
        self._records: dict[str, dict] = {}
        self._lock = asyncio.Lock()

    async def get(self, badge_token: str) -> Optional[Badge]:
        record = self._records.get(badge_token)
        return Badge.from_record(record) if record else None

    async def put(self, badge: Badge) -> None:
        async with self._lock:
            if badge.badge_token in self._records:
                raise ValidationError("Badge token already exists", reason="duplicate_token")
            self._records[badge.badge_token] = badge.to_record()

    async def conditional_revoke(self, badge_token: str, reason: str,
                                 revoked_at: datetime) -> Optional[Badge]:
        async with self._lock:
            record = self._records.get(badge_token)
            if record is None or record.get("revoked_at"):
                return None
            badge = Badge.from_record(record)
            badge.revoked_at = revoked_at
            badge.revocation_reason = reason
            self._records[badge_token] = badge.to_record()
            return badge

    async def list_for_subject(self, subject_id: str) -> list[Badge]:
        badges = [
            Badge.from_record(r) for r in self._records.values()
            if r["payload"]["sub"] == subject_id
        ]
        return sorted(badges, key=lambda b: b.issued_at, reverse=True)

    async def revoke_all_for_subject(self, subject_id: str, reason: str,
                                     revoked_at: datetime) -> int:
        tokens = [
            token for token, r in self._records.items()
            if r["payload"]["sub"] == subject_id and not r.get("revoked_at")
        ]
        revoked = 0
        for token in tokens:
            if await self.conditional_revoke(token, reason, revoked_at) is not None:
                revoked += 1
        return revoked

    def __len__(self):
        return len(self._records)

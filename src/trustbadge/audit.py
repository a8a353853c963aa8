"""
trustbadge.audit — Append-only trail of badge verification attempts.

Audit logging is observability, not correctness: VerificationAuditLog.record
never raises and never changes a verification result that was already
computed. Write failures and timeouts are logged and dropped.

The in-memory sink hash-chains its entries so tampering with history is
detectable, the same way a database-backed trail would be checked offline.
"""

import asyncio
import hashlib
import json
import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from trustbadge.models import (
    VerificationOutcome,
    VerificationRecord,
    VerifierContext,
    utcnow,
)

logger = logging.getLogger("trustbadge.audit")

DEFAULT_AUDIT_TIMEOUT = 2.0
DEFAULT_MAX_ENTRIES = 10_000


class AuditSink(ABC):
    """Destination for verification records."""

    @abstractmethod
    async def append(self, record: VerificationRecord) -> None: ...


# ─── Memory Sink ───────────────────────────────────────────────────

@dataclass
class AuditEntry:
    """A stored record with hash-chain integrity."""
    record: VerificationRecord
    sequence: int
    prev_hash: str
    entry_hash: str = ""

    def compute_hash(self) -> str:
        content = json.dumps({
            "record": self.record.to_dict(),
            "sequence": self.sequence,
            "prev_hash": self.prev_hash,
        }, sort_keys=True)
        return hashlib.sha256(content.encode()).hexdigest()


class MemoryAuditSink(AuditSink):
    """
    In-process verification trail, bounded to the newest ``max_entries``.

    When old entries are evicted the chain is anchored at the evicted
    entry's hash, so the kept window still verifies end to end.

    Usage:
        sink = MemoryAuditSink()
        log = VerificationAuditLog(sink)
        await log.record("token", VerificationOutcome.VALID)

        sink.query(result=VerificationOutcome.EXPIRED)
        assert sink.verify_integrity()[0]
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._entries: deque[AuditEntry] = deque(maxlen=max_entries)
        self._anchor_hash = "genesis"
        self._sequence = 0

    @property
    def max_entries(self) -> int:
        return self._entries.maxlen

    @property
    def evicted(self) -> int:
        return self._sequence - len(self._entries)

    async def append(self, record: VerificationRecord) -> None:
        prev_hash = self._entries[-1].entry_hash if self._entries else self._anchor_hash
        entry = AuditEntry(record=record, sequence=self._sequence, prev_hash=prev_hash)
        entry.entry_hash = entry.compute_hash()
        if len(self._entries) == self._entries.maxlen:
            self._anchor_hash = self._entries[0].entry_hash
        self._entries.append(entry)
        self._sequence += 1

    @property
    def records(self) -> list[VerificationRecord]:
        return [e.record for e in self._entries]

    def verify_integrity(self) -> tuple[bool, Optional[int]]:
        """(True, None) if intact, else (False, index of first bad entry)."""
        for i, entry in enumerate(self._entries):
            if entry.entry_hash != entry.compute_hash():
                return False, i
            expected_prev = self._anchor_hash if i == 0 else self._entries[i - 1].entry_hash
            if entry.prev_hash != expected_prev:
                return False, i
        return True, None

    def query(self, badge_ref: Optional[str] = None,
              result: Optional[VerificationOutcome] = None,
              since: Optional[datetime] = None,
              limit: int = 100) -> list[VerificationRecord]:
        """Most recent matching records, returned oldest first."""
        matches = []
        for entry in reversed(self._entries):
            rec = entry.record
            if badge_ref and rec.badge_ref != badge_ref:
                continue
            if result and rec.result != result:
                continue
            if since and rec.timestamp < since:
                continue
            matches.append(rec)
            if len(matches) >= limit:
                break
        return list(reversed(matches))

    def summary(self) -> dict:
        counts: dict[str, int] = {}
        for entry in self._entries:
            key = entry.record.result.value
            counts[key] = counts.get(key, 0) + 1
        return {
            "total": len(self._entries),
            "evicted": self.evicted,
            "outcomes": counts,
            "integrity_verified": self.verify_integrity()[0],
        }

    def __len__(self):
        return len(self._entries)


# ─── Best-effort Writer ────────────────────────────────────────────

class VerificationAuditLog:
    """Best-effort front for an AuditSink."""

    def __init__(self, sink: Optional[AuditSink] = None,
                 timeout: float = DEFAULT_AUDIT_TIMEOUT):
        self.sink = sink if sink is not None else MemoryAuditSink()
        self.timeout = timeout

    async def record(self, badge_ref: str, outcome: VerificationOutcome,
                     context: Optional[VerifierContext] = None,
                     timestamp: Optional[datetime] = None) -> bool:
        """Append one record. Returns False if the write was dropped.

        ``timestamp`` is the decision time of the verification; now if omitted.
        """
        rec = VerificationRecord(
            badge_ref=badge_ref,
            result=outcome,
            context=context or VerifierContext(),
            timestamp=timestamp or utcnow(),
        )
        try:
            await asyncio.wait_for(self.sink.append(rec), timeout=self.timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning("Audit write timed out after %.1fs", self.timeout,
                           extra={"event": "audit_dropped", "outcome": outcome.value})
        except Exception as e:
            logger.warning("Audit write failed: %s", type(e).__name__,
                           extra={"event": "audit_dropped", "outcome": outcome.value})
        return False

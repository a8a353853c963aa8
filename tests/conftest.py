"""Global test configuration — runs before any test module imports."""
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest
from nacl.signing import SigningKey

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

# Must be set BEFORE any trustbadge imports; slowapi reads this at init
os.environ["RATELIMIT_ENABLED"] = "False"

START = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def pytest_configure(config):
    """Disable rate limiter after all imports."""
    from trustbadge.security import limiter
    limiter.enabled = False


class FakeClock:
    """Settable UTC clock for the lifecycle manager."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def keys():
    from trustbadge.keys import KeyManager
    return KeyManager(bytes(SigningKey.generate()))


@pytest.fixture
def other_keys():
    from trustbadge.keys import KeyManager
    return KeyManager(bytes(SigningKey.generate()))


@pytest.fixture
def anchor_store():
    from trustbadge.storage import MemoryAnchorStore
    return MemoryAnchorStore()


@pytest.fixture
def audit_sink():
    from trustbadge.audit import MemoryAuditSink
    return MemoryAuditSink()


@pytest.fixture
def manager(keys, anchor_store, audit_sink, clock):
    from trustbadge.audit import VerificationAuditLog
    from trustbadge.badges import BadgeLifecycleManager
    from trustbadge.storage import MemoryBadgeStore
    return BadgeLifecycleManager(
        keys,
        MemoryBadgeStore(),
        anchor_store=anchor_store,
        audit=VerificationAuditLog(audit_sink),
        clock=clock,
    )

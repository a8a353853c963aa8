"""Tests for trustbadge.storage — in-memory anchor and badge stores."""

import asyncio
from datetime import timedelta

import pytest

from trustbadge.errors import ValidationError
from trustbadge.models import Badge, BadgePayload, IdentityAnchor
from trustbadge.storage import MemoryAnchorStore, MemoryBadgeStore

from conftest import START


def make_badge(token: str, subject: str = "user-1", issued=START) -> Badge:
    payload = BadgePayload(
        sub=subject, iss="trustbridge",
        iat=int(issued.timestamp()), exp=int((issued + timedelta(days=7)).timestamp()),
        trust_score=45, badge_token=token, edu_verified=False,
    )
    return Badge(payload=payload, signature="sig", public_key_id="0011223344556677",
                 issued_at=issued, expires_at=issued + timedelta(days=7),
                 score_breakdown={"base": {"score": 20, "label": "Account Presence"}})


# ─── Anchors ───────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_anchor_upsert_by_provider():
    store = MemoryAnchorStore()
    store.connect("user-1", IdentityAnchor("gmail"))
    store.connect("user-1", IdentityAnchor("gmail", is_edu_verified=True))
    store.connect("user-1", IdentityAnchor("linkedin"))
    anchors = await store.get_anchors("user-1")
    assert len(anchors) == 2
    assert any(a.provider == "gmail" and a.is_edu_verified for a in anchors)


@pytest.mark.asyncio
async def test_anchor_disconnect():
    store = MemoryAnchorStore()
    store.connect("user-1", IdentityAnchor("gmail"))
    assert store.disconnect("user-1", "gmail")
    assert not store.disconnect("user-1", "gmail")
    assert await store.get_anchors("user-1") == []


# ─── Badges ────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_put_and_get():
    store = MemoryBadgeStore()
    badge = make_badge("t1")
    await store.put(badge)
    fetched = await store.get("t1")
    assert fetched.payload == badge.payload
    assert fetched.issued_at == badge.issued_at
    assert fetched.score_breakdown == badge.score_breakdown
    assert await store.get("missing") is None
    assert len(store) == 1


@pytest.mark.asyncio
async def test_duplicate_token_rejected():
    store = MemoryBadgeStore()
    await store.put(make_badge("t1"))
    with pytest.raises(ValidationError) as exc:
        await store.put(make_badge("t1"))
    assert exc.value.reason == "duplicate_token"


@pytest.mark.asyncio
async def test_returned_badges_are_copies():
    store = MemoryBadgeStore()
    await store.put(make_badge("t1"))
    fetched = await store.get("t1")
    fetched.revoked_at = START
    assert (await store.get("t1")).revoked_at is None


@pytest.mark.asyncio
async def test_conditional_revoke_only_once():
    store = MemoryBadgeStore()
    await store.put(make_badge("t1"))
    first = await store.conditional_revoke("t1", "compromised", START + timedelta(hours=1))
    second = await store.conditional_revoke("t1", "again", START + timedelta(hours=2))
    assert first is not None and first.revocation_reason == "compromised"
    assert second is None
    stored = await store.get("t1")
    assert stored.revoked_at == START + timedelta(hours=1)
    assert stored.revocation_reason == "compromised"


@pytest.mark.asyncio
async def test_conditional_revoke_missing():
    assert await MemoryBadgeStore().conditional_revoke("nope", "x", START) is None


@pytest.mark.asyncio
async def test_concurrent_revokes_single_winner():
    store = MemoryBadgeStore()
    await store.put(make_badge("t1"))
    results = await asyncio.gather(*[
        store.conditional_revoke("t1", f"reason-{i}", START) for i in range(10)
    ])
    assert sum(r is not None for r in results) == 1


@pytest.mark.asyncio
async def test_list_for_subject_newest_first():
    store = MemoryBadgeStore()
    await store.put(make_badge("old", issued=START))
    await store.put(make_badge("new", issued=START + timedelta(days=1)))
    await store.put(make_badge("other", subject="user-2"))
    tokens = [b.badge_token for b in await store.list_for_subject("user-1")]
    assert tokens == ["new", "old"]


@pytest.mark.asyncio
async def test_revoke_all_for_subject():
    store = MemoryBadgeStore()
    for token in ("a", "b", "c"):
        await store.put(make_badge(token))
    await store.put(make_badge("x", subject="user-2"))
    await store.conditional_revoke("a", "earlier", START)

    assert await store.revoke_all_for_subject("user-1", "bulk", START) == 2
    assert await store.revoke_all_for_subject("user-1", "bulk", START) == 0
    assert (await store.get("a")).revocation_reason == "earlier"
    assert (await store.get("x")).revoked_at is None

"""Tests for trustbadge.portable — wire badges and offline verification."""

import asyncio
import json
from datetime import timedelta

import pytest

from trustbadge.errors import ValidationError
from trustbadge.models import IdentityAnchor, VerificationOutcome
from trustbadge.portable import PortableBadge, badge_from_json, badge_to_json, verify_offline
from trustbadge.signing import BadgeSigner


@pytest.fixture
def issued(manager):
    return asyncio.run(manager.issue("user-1", [IdentityAnchor("gmail"), IdentityAnchor("linkedin")]))


def test_valid_offline(issued, keys, clock):
    result = verify_offline(issued.to_wire(), keys.public_key_b64, now=clock())
    assert result.valid
    assert result.trust_score == 75
    assert "revocation not checked" in result.message
    assert result.expires_at == issued.expires_at


def test_accepts_key_manager_and_raw_bytes(issued, keys, clock):
    assert verify_offline(issued.to_wire(), keys, now=clock()).valid
    assert verify_offline(issued.to_wire(), keys.public_key, now=clock()).valid


def test_expired_offline(issued, keys, clock):
    later = clock() + timedelta(days=7, seconds=1)
    result = verify_offline(issued.to_wire(), keys, now=later)
    assert result.outcome is VerificationOutcome.EXPIRED


def test_expiry_before_signature_offline(issued, keys, clock):
    wire = issued.to_wire()
    wire["signature"] = "garbage"
    later = clock() + timedelta(days=30)
    assert verify_offline(wire, keys, now=later).outcome is VerificationOutcome.EXPIRED


def test_tampered_offline(issued, keys, clock):
    wire = issued.to_wire()
    wire["payload"]["trust_score"] = 100
    result = verify_offline(wire, keys, now=clock())
    assert result.outcome is VerificationOutcome.INVALID_SIGNATURE


def test_token_mismatch_offline(issued, keys, clock):
    wire = issued.to_wire()
    wire["badge_token"] = "00" * 32
    result = verify_offline(wire, keys, now=clock())
    assert result.outcome is VerificationOutcome.INVALID_SIGNATURE
    assert "does not match" in result.message


def test_wrong_issuer_key_offline(issued, other_keys, clock):
    result = verify_offline(issued.to_wire(), other_keys, now=clock())
    assert result.outcome is VerificationOutcome.INVALID_SIGNATURE
    assert "different key" in result.message


def test_key_id_relabel_does_not_help(issued, keys, other_keys, clock):
    wire = issued.to_wire()
    wire["signature"] = BadgeSigner(other_keys).sign(wire["payload"])
    result = verify_offline(wire, keys, now=clock())
    assert result.outcome is VerificationOutcome.INVALID_SIGNATURE


def test_incomplete_payload_offline(issued, keys, clock):
    wire = issued.to_wire()
    del wire["payload"]["exp"]
    result = verify_offline(wire, keys, now=clock())
    assert result.outcome is VerificationOutcome.INVALID_SIGNATURE


def test_malformed_timestamps_offline(issued, keys, clock):
    wire = issued.to_wire()
    wire["payload"]["exp"] = "next tuesday"
    result = verify_offline(wire, keys, now=clock())
    assert result.outcome is VerificationOutcome.INVALID_SIGNATURE


def test_from_dict_requires_fields():
    with pytest.raises(ValidationError) as exc:
        PortableBadge.from_dict({"badge_token": "t"})
    assert exc.value.reason == "invalid_badge"
    with pytest.raises(ValidationError):
        PortableBadge.from_dict(["not", "a", "dict"])
    with pytest.raises(ValidationError):
        PortableBadge.from_dict({"badge_token": "t", "payload": "x",
                                 "signature": "s", "public_key_id": "k"})


def test_json_file_format(issued, keys, clock):
    text = badge_to_json(issued)
    data = json.loads(text)
    assert set(data) >= {"badge_token", "payload", "signature", "public_key_id",
                         "issued_at", "expires_at", "score_breakdown"}
    assert verify_offline(badge_from_json(text), keys, now=clock()).valid


def test_invalid_json():
    with pytest.raises(ValidationError, match="not valid JSON"):
        badge_from_json("{nope")

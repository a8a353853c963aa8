"""Tests for trustbadge.scoring — anchor-based trust scores and clearance tiers."""

import itertools

import pytest

from trustbadge.errors import ValidationError
from trustbadge.models import IdentityAnchor
from trustbadge.scoring import (
    CLEARANCE_TIERS,
    DEFAULT_WEIGHTS,
    MAX_SCORE,
    TrustScoreEngine,
    clearance_for,
    compute_score,
    is_educational_email,
    scoring_weights,
)

GMAIL = IdentityAnchor("gmail")
GMAIL_EDU = IdentityAnchor("gmail", is_edu_verified=True, email_address="ana@mit.edu")
LINKEDIN = IdentityAnchor("linkedin", connection_count=240)


def test_weights_sum_to_max():
    assert sum(scoring_weights().values()) == MAX_SCORE
    assert scoring_weights() == DEFAULT_WEIGHTS


def test_no_anchors_scores_zero():
    result = compute_score([])
    assert result.score == 0
    assert result.edu_verified is False
    assert all(part["score"] == 0 for part in result.breakdown.values())
    assert result.clearance.level == "spectator"


def test_gmail_only():
    result = compute_score([GMAIL])
    assert result.score == 45
    assert result.breakdown["base"]["score"] == 20
    assert result.breakdown["gmail"]["score"] == 25
    assert result.breakdown["linkedin"]["score"] == 0
    assert result.clearance.level == "spectator"


def test_linkedin_only():
    assert compute_score([LINKEDIN]).score == 50


def test_gmail_and_linkedin():
    result = compute_score([GMAIL, LINKEDIN])
    assert result.score == 75
    assert result.clearance.level == "trusted"


def test_full_house_hits_cap():
    result = compute_score([GMAIL_EDU, LINKEDIN])
    assert result.score == 100
    assert result.edu_verified is True
    assert result.breakdown["edu_bonus"]["score"] == 25
    assert result.clearance.level == "elite"


def test_edu_flag_only_counts_on_email_provider():
    result = compute_score([IdentityAnchor("linkedin", is_edu_verified=True)])
    assert result.score == 50
    assert result.edu_verified is False


def test_unknown_provider_earns_base_only():
    assert compute_score([IdentityAnchor("github")]).score == 20


def test_duplicate_providers_do_not_stack():
    assert compute_score([GMAIL, GMAIL, LINKEDIN, LINKEDIN]).score == 75


def test_order_independent():
    anchors = [GMAIL_EDU, LINKEDIN, IdentityAnchor("github")]
    scores = {compute_score(list(p)).score for p in itertools.permutations(anchors)}
    assert scores == {100}


def test_dict_anchors_accepted():
    result = compute_score([
        {"provider": "Gmail", "is_edu_verified": True},
        {"provider": "linkedin", "account_created_at": "2019-05-01T00:00:00Z"},
    ])
    assert result.score == 100


@pytest.mark.parametrize("flag", ["false", "true", "0", 1, 0, "yes"])
def test_non_boolean_edu_flag_rejected(flag):
    with pytest.raises(ValidationError) as exc:
        compute_score([{"provider": "gmail", "is_edu_verified": flag}])
    assert exc.value.reason == "invalid_anchor"


def test_false_or_missing_edu_flag_earns_no_bonus():
    assert compute_score([{"provider": "gmail", "is_edu_verified": False}]).score == 45
    assert compute_score([{"provider": "gmail", "is_edu_verified": None}]).score == 45
    assert compute_score([{"provider": "gmail"}]).score == 45


def test_provider_normalized_on_construction():
    assert IdentityAnchor(" LinkedIn ").provider == "linkedin"
    direct = compute_score([IdentityAnchor("Gmail")])
    assert direct.score == 45
    assert direct.score == compute_score([{"provider": "GMAIL"}]).score


@pytest.mark.parametrize("provider", ["", "   ", None, 7])
def test_anchor_without_provider_rejected(provider):
    with pytest.raises(ValidationError):
        IdentityAnchor(provider)


def test_breakdown_labels():
    result = compute_score([GMAIL])
    assert result.breakdown["gmail"]["label"] == "Gmail Connected"
    assert set(result.breakdown) == set(DEFAULT_WEIGHTS)


def test_to_dict_shape():
    data = compute_score([GMAIL, LINKEDIN]).to_dict()
    assert data["score"] == 75
    assert data["clearance"] == {"level": "trusted", "title": "Trusted", "color": "#10B981", "rank": 2}


@pytest.mark.parametrize("weights, message", [
    ({"base": 20, "gmail": 25, "linkedin": 30}, "exactly"),
    ({"base": 20, "gmail": 25, "linkedin": 30, "edu_bonus": 30}, "sum to"),
    ({"base": -5, "gmail": 50, "linkedin": 30, "edu_bonus": 25}, "non-negative"),
])
def test_invalid_weights_rejected(weights, message):
    with pytest.raises(ValueError, match=message):
        TrustScoreEngine(weights)


def test_custom_weights():
    engine = TrustScoreEngine({"base": 10, "gmail": 30, "linkedin": 40, "edu_bonus": 20})
    assert engine.compute([LINKEDIN]).score == 50
    assert engine.scoring_weights()["linkedin"] == 40


# ─── Clearance ─────────────────────────────────────────────────────

@pytest.mark.parametrize("score, level", [
    (0, "spectator"), (49, "spectator"),
    (50, "verified"), (74, "verified"),
    (75, "trusted"), (99, "trusted"),
    (100, "elite"),
])
def test_clearance_boundaries(score, level):
    assert clearance_for(score).level == level


def test_clearance_clamps_out_of_range():
    assert clearance_for(-10).level == "spectator"
    assert clearance_for(250).level == "elite"


def test_tiers_ordered_by_rank():
    assert [t.rank for t in CLEARANCE_TIERS] == [0, 1, 2, 3]
    assert [t.min_score for t in CLEARANCE_TIERS] == sorted(t.min_score for t in CLEARANCE_TIERS)


# ─── Educational email ─────────────────────────────────────────────

@pytest.mark.parametrize("email, expected", [
    ("ana@mit.edu", True),
    ("ana@cs.stanford.edu", True),
    ("bo@unimelb.edu.au", True),
    ("cy@ox.ac.uk", True),
    ("DEE@HARVARD.EDU", True),
    ("ana@gmail.com", False),
    ("ana@education.com", False),
    ("no-at-sign.edu", False),
    ("", False),
    (None, False),
])
def test_is_educational_email(email, expected):
    assert is_educational_email(email) is expected

from decimal import Decimal

import pytest

from models.models import BidTokenTier
from services.token_pricing import (
    DEFAULT_BID_TOKEN_TIERS,
    create_default_token_tiers,
    load_active_tiers,
    tokens_required_for_budget,
    tokens_required_for_project,
)

DEFAULT_TIERS = [BidTokenTier(**data) for data in DEFAULT_BID_TOKEN_TIERS]


@pytest.mark.parametrize(
    "budget, expected",
    [
        (0, 1),
        (249.99, 1),
        (250, 2),
        (999, 2),
        (1000, 3),
        (4999.5, 3),
        (5000, 5),
        (250000, 5),
        (Decimal("1200.00"), 3),
    ],
)
def test_default_tiers(budget, expected):
    assert tokens_required_for_budget(budget, DEFAULT_TIERS) == expected


@pytest.mark.parametrize("budget", [None, "500", -10, float("nan"), float("inf"), True])
def test_unpriceable_budget_fails_closed_to_one(budget):
    assert tokens_required_for_budget(budget, DEFAULT_TIERS) == 1


def test_no_tiers_uses_default_cost():
    assert tokens_required_for_budget(800, []) == 1
    assert tokens_required_for_budget(800, [], default=4) == 4


def test_gap_between_tiers_fails_closed():
    tiers = [
        BidTokenTier(min_budget=0, max_budget=100, tokens_required=2),
        BidTokenTier(min_budget=200, max_budget=None, tokens_required=6),
    ]
    assert tokens_required_for_budget(150, tiers) == 1


def test_negative_configured_cost_fails_closed():
    tiers = [BidTokenTier(min_budget=0, max_budget=None, tokens_required=-3)]
    assert tokens_required_for_budget(50, tiers) == 1


def test_zero_cost_tier_is_honoured():
    tiers = [BidTokenTier(min_budget=0, max_budget=None, tokens_required=0)]
    assert tokens_required_for_budget(50, tiers) == 0


def test_inactive_tiers_are_skipped():
    tiers = [
        BidTokenTier(min_budget=0, max_budget=None, tokens_required=9, is_active=False),
        BidTokenTier(min_budget=0, max_budget=None, tokens_required=2),
    ]
    assert tokens_required_for_budget(50, tiers) == 2


def test_same_inputs_same_cost():
    assert tokens_required_for_budget(1500, DEFAULT_TIERS) == tokens_required_for_budget(1500, DEFAULT_TIERS)


def test_create_default_tiers_is_idempotent(session):
    first = create_default_token_tiers(session)
    second = create_default_token_tiers(session)
    assert len(first) == len(DEFAULT_BID_TOKEN_TIERS)
    assert len(load_active_tiers(session)) == len(DEFAULT_BID_TOKEN_TIERS)
    assert [t.id for t in first] == [t.id for t in second]


def test_tokens_required_for_project(session, tiers, buyer, make_project):
    project = make_project(buyer, budget=2500)
    assert tokens_required_for_project(session, project) == 3

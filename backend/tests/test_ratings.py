"""Tests for derived ratings: post tiers, kill zone, credit rating."""

import pytest

from config import BlocksConfig
from ledger_fakes import key, make_post, make_profile
from ratings import (
    community_eligibility,
    credit_rating,
    credit_tier,
    in_kill_zone,
    post_rating_from_likes,
)
from schemas import CreditTier, PostRating

CONFIG = BlocksConfig()
OWNER = key("owner")


class TestPostRating:
    @pytest.mark.parametrize(
        "likes,expected",
        [
            (0, PostRating.NONE),
            (4, PostRating.NONE),
            (5, PostRating.BRONZE),
            (20, PostRating.SILVER),
            (49, PostRating.SILVER),
            (50, PostRating.GOLD),
            (150, PostRating.PLATINUM),
            (500, PostRating.DIAMOND),
            (1000, PostRating.ACE),
            (1_000_000, PostRating.CONQUEROR),
        ],
    )
    def test_thresholds(self, likes, expected):
        assert post_rating_from_likes(likes, CONFIG) == expected


class TestKillZone:
    def test_stored_flag_wins(self):
        post = make_post(1, OWNER, likes=100, timestamp=1_000, in_kill_zone=True)
        assert in_kill_zone(post, now=1_001, config=CONFIG) is True

    def test_no_likes_after_window(self):
        post = make_post(1, OWNER, likes=0, timestamp=1_000)
        assert in_kill_zone(post, now=1_000 + CONFIG.kill_zone_window_sec - 1, config=CONFIG) is False
        assert in_kill_zone(post, now=1_000 + CONFIG.kill_zone_window_sec, config=CONFIG) is True

    def test_liked_post_survives_window(self):
        post = make_post(1, OWNER, likes=1, timestamp=1_000)
        assert in_kill_zone(post, now=1_000 + 10 * CONFIG.kill_zone_window_sec, config=CONFIG) is False


class TestCreditRating:
    def test_hundredths_and_clamp(self):
        assert credit_rating(make_profile(OWNER, user_credit_rating=100), CONFIG) == 1.0
        assert credit_rating(make_profile(OWNER, user_credit_rating=321), CONFIG) == 3.21
        assert credit_rating(make_profile(OWNER, user_credit_rating=9_000), CONFIG) == 5.0
        assert credit_rating(make_profile(OWNER, user_credit_rating=-500), CONFIG) == -0.10

    @pytest.mark.parametrize(
        "rating,tier",
        [
            (5.0, CreditTier.TOP_CONTRIBUTOR),
            (4.20, CreditTier.TOP_CONTRIBUTOR),
            (1.0, CreditTier.VALUABLE_CONTRIBUTOR),
            (0.5, CreditTier.AVERAGE_CONTRIBUTOR),
            (0.0, CreditTier.LOW_VALUE),
            (-0.05, CreditTier.SPAM_USER),
        ],
    )
    def test_tiers(self, rating, tier):
        assert credit_tier(rating, CONFIG) == tier


class TestCommunityEligibility:
    def test_requires_profile(self):
        result = community_eligibility(None, 0, CONFIG)
        assert result.allowed is False
        assert result.reason == "profile required"

    def test_limit_per_creator(self):
        result = community_eligibility(make_profile(OWNER, user_credit_rating=400), 3, CONFIG)
        assert result.allowed is False
        assert result.reason == "community limit reached"

    def test_minimum_credit(self):
        result = community_eligibility(make_profile(OWNER, user_credit_rating=200), 0, CONFIG)
        assert result.allowed is False
        assert result.credit_rating == 2.0

    def test_allowed(self):
        result = community_eligibility(make_profile(OWNER, user_credit_rating=250), 2, CONFIG)
        assert result.allowed is True
        assert result.reason is None
        assert result.max_allowed == 3

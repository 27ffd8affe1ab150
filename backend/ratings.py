"""Pure derivations over ledger counters: post tiers, kill zone, credit rating."""

import time
from typing import Optional

from config import BlocksConfig, settings
from schemas import (
    CommunityEligibility,
    CreditTier,
    Post,
    PostRating,
    Profile,
)


def post_rating_from_likes(likes: int, config: BlocksConfig = settings) -> PostRating:
    t = config.post_rating
    if likes >= t.conqueror:
        return PostRating.CONQUEROR
    if likes >= t.ace:
        return PostRating.ACE
    if likes >= t.diamond:
        return PostRating.DIAMOND
    if likes >= t.platinum:
        return PostRating.PLATINUM
    if likes >= t.gold:
        return PostRating.GOLD
    if likes >= t.silver:
        return PostRating.SILVER
    if likes >= t.bronze:
        return PostRating.BRONZE
    return PostRating.NONE


def in_kill_zone(post: Post, now: Optional[float] = None, config: BlocksConfig = settings) -> bool:
    """Stored flag, or too few likes once the grace window has passed."""
    if post.in_kill_zone:
        return True
    now = time.time() if now is None else now
    age = now - post.timestamp
    return age >= config.kill_zone_window_sec and post.likes < config.kill_zone_min_likes


def credit_rating(profile: Profile, config: BlocksConfig = settings) -> float:
    """Ledger score is stored in hundredths; clamp to the configured range."""
    value = profile.user_credit_rating / 100.0
    return round(max(config.ucr_min, min(config.ucr_max, value)), 2)


def credit_tier(rating: float, config: BlocksConfig = settings) -> CreditTier:
    tiers = config.credit_tiers
    if rating >= tiers.top_contributor:
        return CreditTier.TOP_CONTRIBUTOR
    if rating >= tiers.valuable_contributor:
        return CreditTier.VALUABLE_CONTRIBUTOR
    if rating >= tiers.average_contributor:
        return CreditTier.AVERAGE_CONTRIBUTOR
    if rating >= tiers.low_value:
        return CreditTier.LOW_VALUE
    return CreditTier.SPAM_USER


def community_eligibility(
    profile: Optional[Profile],
    created_count: int,
    config: BlocksConfig = settings,
) -> CommunityEligibility:
    rating = credit_rating(profile, config) if profile is not None else None
    reason = None
    if profile is None:
        reason = "profile required"
    elif created_count >= config.max_communities_per_creator:
        reason = "community limit reached"
    elif rating < config.community_min_credit:
        reason = f"credit rating {config.community_min_credit}+ required"
    return CommunityEligibility(
        allowed=reason is None,
        created_count=created_count,
        max_allowed=config.max_communities_per_creator,
        credit_rating=rating,
        required_credit=config.community_min_credit,
        reason=reason,
    )

"""Response builders: decoded entities plus derived ratings and local flags."""

import time
from typing import Dict, Iterable, List, Optional

from config import BlocksConfig, settings
from domain_cache import DomainCache
from engagement import EngagementReconciler
from ratings import credit_rating, credit_tier
from schemas import (
    Comment,
    CommentResponse,
    Community,
    CommunityResponse,
    Post,
    PostResponse,
    Profile,
    ProfileResponse,
)


def profile_view(profile: Profile, config: BlocksConfig = settings) -> ProfileResponse:
    rating = credit_rating(profile, config)
    return ProfileResponse(
        **profile.model_dump(),
        credit_rating=rating,
        credit_tier=credit_tier(rating, config),
    )


def post_view(
    post: Post,
    reconciler: EngagementReconciler,
    wallet: Optional[str] = None,
    author: Optional[Profile] = None,
    now: Optional[float] = None,
) -> PostResponse:
    view = reconciler.reconcile(wallet, post, now)
    return PostResponse(
        **post.model_dump(exclude={"in_kill_zone"}),
        in_kill_zone=view.in_kill_zone,
        rating=view.rating,
        liked=view.liked,
        bookmarked=view.bookmarked,
        author_profile=profile_view(author, reconciler.config) if author else None,
    )


async def _authors(cache: DomainCache, owners: Iterable[str]) -> Dict[str, Optional[Profile]]:
    """Author profiles by owner: cached ones first, the rest looked up one by one.

    An author whose lookup fails maps to None; the entity still renders.
    """
    authors: Dict[str, Optional[Profile]] = {}
    missing = []
    for owner in dict.fromkeys(owners):
        profile = cache.cached_profile(owner)
        if profile is None:
            missing.append(owner)
        authors[owner] = profile
    if missing:
        resolved = await cache.fetcher.resolve_each(missing, cache.profile_for_owner)
        authors.update(zip(missing, resolved))
    return authors


async def post_views(
    posts: Iterable[Post],
    cache: DomainCache,
    reconciler: EngagementReconciler,
    wallet: Optional[str] = None,
) -> List[PostResponse]:
    posts = list(posts)
    authors = await _authors(cache, (p.author for p in posts))
    now = time.time()
    return [post_view(p, reconciler, wallet, authors.get(p.author), now) for p in posts]


async def comment_views(
    comments: Iterable[Comment],
    cache: DomainCache,
    config: BlocksConfig = settings,
) -> List[CommentResponse]:
    comments = list(comments)
    authors = await _authors(cache, (c.author for c in comments))
    out = []
    for comment in comments:
        author = authors.get(comment.author)
        out.append(
            CommentResponse(
                **comment.model_dump(),
                author_profile=profile_view(author, config) if author else None,
            )
        )
    return out


def community_view(community: Community, created_by_count: int) -> CommunityResponse:
    return CommunityResponse(**community.model_dump(), created_by_count=created_by_count)

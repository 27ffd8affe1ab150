"""Profile routes."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from deps import get_cache, get_current_wallet, get_optional_wallet, get_reconciler
from domain_cache import DomainCache
from engagement import EngagementReconciler
from pubkeys import is_pubkey
from schemas import FollowResponse, PostResponse, ProfileResponse
from views import post_views, profile_view

router = APIRouter(prefix="/api/profiles", tags=["profiles"])


@router.get("", response_model=List[ProfileResponse])
async def list_profiles(q: Optional[str] = None, cache: DomainCache = Depends(get_cache)):
    profiles = await cache.profiles()
    if q:
        needle = q.strip().lower()
        profiles = [p for p in profiles if needle in p.username.lower()]
    profiles = sorted(profiles, key=lambda p: p.username.lower())
    return [profile_view(p) for p in profiles]


@router.get("/{owner}", response_model=ProfileResponse)
async def get_profile(owner: str, cache: DomainCache = Depends(get_cache)):
    if not is_pubkey(owner):
        raise HTTPException(status_code=422, detail="Invalid wallet address")
    profile = await cache.profile_for_owner(owner)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile_view(profile)


@router.get("/{owner}/posts", response_model=List[PostResponse])
async def get_profile_posts(
    owner: str,
    cache: DomainCache = Depends(get_cache),
    reconciler: EngagementReconciler = Depends(get_reconciler),
    wallet: Optional[str] = Depends(get_optional_wallet),
):
    if not is_pubkey(owner):
        raise HTTPException(status_code=422, detail="Invalid wallet address")
    return await post_views(await cache.posts(author=owner), cache, reconciler, wallet)


@router.get("/{owner}/follow", response_model=FollowResponse)
async def get_follow_state(
    owner: str,
    reconciler: EngagementReconciler = Depends(get_reconciler),
    wallet: str = Depends(get_current_wallet),
):
    return FollowResponse(owner=owner, following=reconciler.is_following(wallet, owner))


@router.post("/{owner}/follow", response_model=FollowResponse)
async def toggle_follow(
    owner: str,
    reconciler: EngagementReconciler = Depends(get_reconciler),
    wallet: str = Depends(get_current_wallet),
):
    """Follow or unfollow through the ledger; the mark follows the confirmed write."""
    if not is_pubkey(owner):
        raise HTTPException(status_code=422, detail="Invalid wallet address")
    result = await reconciler.toggle_follow(wallet, owner)
    return FollowResponse(owner=owner, following=result.following, signature=result.signature)

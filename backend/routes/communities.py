"""Community (SubBlock) routes."""

from collections import Counter
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from deps import get_cache, get_current_wallet
from domain_cache import DomainCache
from ratings import community_eligibility
from schemas import CommunityEligibility, CommunityResponse
from views import community_view

router = APIRouter(prefix="/api/communities", tags=["communities"])


@router.get("", response_model=List[CommunityResponse])
async def list_communities(cache: DomainCache = Depends(get_cache)):
    communities = await cache.communities()
    per_creator = Counter(c.creator for c in communities)
    return [community_view(c, per_creator[c.creator]) for c in communities]


@router.get("/eligibility", response_model=CommunityEligibility)
async def get_eligibility(
    cache: DomainCache = Depends(get_cache),
    wallet: str = Depends(get_current_wallet),
):
    """Whether the connected wallet may create another community."""
    profile = await cache.profile_for_owner(wallet)
    created = await cache.communities_created_by(wallet)
    return community_eligibility(profile, created)


@router.get("/{community_id}", response_model=CommunityResponse)
async def get_community(community_id: int, cache: DomainCache = Depends(get_cache)):
    community = await cache.community_by_id(community_id)
    if community is None:
        raise HTTPException(status_code=404, detail="Community not found")
    return community_view(community, await cache.communities_created_by(community.creator))

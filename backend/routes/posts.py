"""Feed, comment, like and bookmark routes."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from deps import get_cache, get_current_wallet, get_optional_wallet, get_reconciler
from domain_cache import DomainCache
from engagement import EngagementReconciler
from errors import WriteRejected
from schemas import CommentResponse, EngagementView, PostResponse, ToggleResponse
from views import comment_views, post_views

router = APIRouter(prefix="/api", tags=["posts"])


@router.get("/posts", response_model=List[PostResponse])
async def get_feed(
    skip: int = 0,
    limit: int = 20,
    cache: DomainCache = Depends(get_cache),
    reconciler: EngagementReconciler = Depends(get_reconciler),
    wallet: Optional[str] = Depends(get_optional_wallet),
):
    limit = max(1, min(limit, 100))
    posts = (await cache.posts())[max(0, skip): max(0, skip) + limit]
    return await post_views(posts, cache, reconciler, wallet)


@router.get("/posts/{post_id}", response_model=PostResponse)
async def get_post(
    post_id: int,
    cache: DomainCache = Depends(get_cache),
    reconciler: EngagementReconciler = Depends(get_reconciler),
    wallet: Optional[str] = Depends(get_optional_wallet),
):
    post = await cache.post_by_id(post_id)
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    return (await post_views([post], cache, reconciler, wallet))[0]


@router.get("/posts/{post_id}/comments", response_model=List[CommentResponse])
async def get_comments(
    post_id: int,
    cache: DomainCache = Depends(get_cache),
    reconciler: EngagementReconciler = Depends(get_reconciler),
):
    return await comment_views(await cache.comments_for(post_id), cache, reconciler.config)


@router.get("/posts/{post_id}/engagement", response_model=EngagementView)
async def get_engagement(
    post_id: int,
    cache: DomainCache = Depends(get_cache),
    reconciler: EngagementReconciler = Depends(get_reconciler),
    wallet: Optional[str] = Depends(get_optional_wallet),
):
    post = await cache.post_by_id(post_id)
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    return reconciler.reconcile(wallet, post)


@router.post("/posts/{post_id}/like", response_model=ToggleResponse)
async def toggle_like(
    post_id: int,
    cache: DomainCache = Depends(get_cache),
    reconciler: EngagementReconciler = Depends(get_reconciler),
    wallet: str = Depends(get_current_wallet),
):
    """Like or unlike through the ledger; the mark follows the confirmed write."""
    post = await cache.post_by_id(post_id)
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    unliking = reconciler.has_liked(wallet, post_id)
    try:
        result = await reconciler.toggle_like(wallet, post_id, post.author)
    except WriteRejected as exc:
        if not unliking:
            raise
        raise HTTPException(
            status_code=502,
            detail=(
                f"Transaction rejected: {exc}. Unlike uses instruction 9 (UnlikePost); "
                "programs deployed without it reject it as invalid instruction data"
            ),
        )
    return ToggleResponse(post_id=post_id, liked=result.liked, signature=result.signature)


@router.post("/posts/{post_id}/bookmark", response_model=ToggleResponse)
async def toggle_bookmark(
    post_id: int,
    reconciler: EngagementReconciler = Depends(get_reconciler),
    wallet: str = Depends(get_current_wallet),
):
    return ToggleResponse(post_id=post_id, bookmarked=reconciler.toggle_bookmark(wallet, post_id))


@router.get("/bookmarks", response_model=List[PostResponse])
async def get_bookmarks(
    cache: DomainCache = Depends(get_cache),
    reconciler: EngagementReconciler = Depends(get_reconciler),
    wallet: str = Depends(get_current_wallet),
):
    return await post_views(await reconciler.bookmarked_posts(wallet), cache, reconciler, wallet)

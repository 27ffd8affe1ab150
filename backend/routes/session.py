"""Wallet session and local engagement-record routes."""

from fastapi import APIRouter, Depends, HTTPException, status

from auth import create_wallet_token
from deps import get_current_wallet, get_reconciler
from engagement import EngagementReconciler
from pubkeys import is_pubkey
from schemas import SessionConnect, SessionResponse

router = APIRouter(prefix="/api/session", tags=["session"])


@router.post("/connect", response_model=SessionResponse)
async def connect_wallet(body: SessionConnect):
    wallet = body.wallet_address.strip()
    if not is_pubkey(wallet):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Invalid wallet address")
    return SessionResponse(access_token=create_wallet_token(wallet), wallet_address=wallet)


@router.get("/me")
async def session_state(
    wallet: str = Depends(get_current_wallet),
    reconciler: EngagementReconciler = Depends(get_reconciler),
):
    return {
        "wallet_address": wallet,
        "liked_post_ids": reconciler.liked_post_ids(wallet),
        "bookmarked_post_ids": reconciler.bookmarked_post_ids(wallet),
        "followed_owners": reconciler.followed_owners(wallet),
    }


@router.delete("/engagement", status_code=status.HTTP_204_NO_CONTENT)
async def clear_engagement(
    wallet: str = Depends(get_current_wallet),
    reconciler: EngagementReconciler = Depends(get_reconciler),
):
    """Forget every local like, follow and bookmark mark for the connected wallet."""
    reconciler.clear(wallet)

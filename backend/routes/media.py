"""Image pinning routes."""

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from config import settings
from deps import get_current_wallet, get_pinning
from pinning import (
    PinningClient,
    PinningError,
    content_hash_from_url,
    gateway_candidates,
    rewrite_gateway,
    validate_image,
)
from schemas import PinResponse

router = APIRouter(prefix="/api/media", tags=["media"])


@router.post("/upload", response_model=PinResponse)
async def upload_image(
    file: UploadFile = File(...),
    pinning: PinningClient = Depends(get_pinning),
    wallet: str = Depends(get_current_wallet),
):
    content = await file.read()
    problem = validate_image(file.content_type or "", len(content))
    if problem:
        raise HTTPException(status_code=422, detail=problem)
    try:
        result = await pinning.upload(file.filename or "upload", content, file.content_type)
    except PinningError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return PinResponse(hash=result.hash, url=result.url, alternates=gateway_candidates(result.url))


@router.get("/gateway", response_model=PinResponse)
async def resolve_gateway(url: str):
    """Preferred gateway URL for stored media plus fallbacks."""
    preferred = rewrite_gateway(url, settings.pinata_gateway)
    content_hash = content_hash_from_url(url)
    if not content_hash:
        raise HTTPException(status_code=422, detail="Invalid media URL")
    return PinResponse(hash=content_hash, url=preferred, alternates=gateway_candidates(url))

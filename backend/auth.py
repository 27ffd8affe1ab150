from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from config import settings
from pubkeys import is_pubkey

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 7 * 24 * 60  # 7 days

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def create_wallet_token(wallet_address: str, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    return jwt.encode({"sub": wallet_address, "exp": expire}, settings.session_secret_key, algorithm=ALGORITHM)


def verify_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, settings.session_secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None


def _wallet_from_token(token: str) -> str:
    payload = verify_token(token)
    wallet = payload.get("sub") if payload else None
    if not wallet or not is_pubkey(wallet):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return wallet


def get_current_wallet(credentials: HTTPAuthorizationCredentials = Depends(security)) -> str:
    """Connected wallet address from the bearer token."""
    return _wallet_from_token(credentials.credentials)


def get_optional_wallet(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
) -> Optional[str]:
    if credentials is None:
        return None
    return _wallet_from_token(credentials.credentials)

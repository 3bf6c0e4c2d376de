from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError

from bazaar import config
from bazaar.schemas import ADMIN_ROLES, Profile
from bazaar.services.factory import get_store
from bazaar.services.store import MarketStore, NotFound

MAGIC_LINK_PURPOSE = "magic_link"
ACCESS_PURPOSE = "access"


def create_access_token(profile: Profile) -> str:
    now = datetime.now(timezone.utc)

    payload = {
        "sub": profile.id,
        "role": profile.role,
        "campus": profile.campus_slug,
        "purpose": ACCESS_PURPOSE,
        "iat": now,
        "exp": now + timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES),
    }

    return jwt.encode(payload, config.get_jwt_secret(), algorithm=config.JWT_ALGORITHM)


def create_magic_link_token(email: str) -> str:
    now = datetime.now(timezone.utc)

    payload = {
        "sub": email,
        "purpose": MAGIC_LINK_PURPOSE,
        "iat": now,
        "exp": now + timedelta(minutes=config.MAGIC_LINK_EXPIRE_MINUTES),
    }

    return jwt.encode(payload, config.get_jwt_secret(), algorithm=config.JWT_ALGORITHM)


def decode_token(token: str, purpose: str) -> dict:
    """Decode a token, raising JWTError when it is invalid, expired or meant for something else."""
    payload = jwt.decode(token, config.get_jwt_secret(), algorithms=[config.JWT_ALGORITHM])

    if payload.get("purpose") != purpose:
        raise JWTError("Token purpose mismatch")

    return payload


bearer_scheme_optional = HTTPBearer(auto_error=False)


def get_current_user_optional(token: HTTPAuthorizationCredentials = Depends(bearer_scheme_optional)):
    if not token:
        return None

    try:
        return decode_token(token.credentials, ACCESS_PURPOSE)
    except JWTError:
        return None


bearer_scheme_required = HTTPBearer(auto_error=True)


def get_current_user_required(token: HTTPAuthorizationCredentials = Depends(bearer_scheme_required)):
    try:
        return decode_token(token.credentials, ACCESS_PURPOSE)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")


def load_profile(store: MarketStore, current_user) -> Profile:
    try:
        profile = store.get_profile(current_user["sub"])
    except NotFound:
        raise HTTPException(status_code=404, detail="User not found")

    if profile.is_banned:
        raise HTTPException(status_code=403, detail="Account suspended")

    return profile


def get_profile_required(
    current_user=Depends(get_current_user_required),
    store: MarketStore = Depends(get_store),
) -> Profile:
    return load_profile(store, current_user)


def get_profile_optional(
    current_user=Depends(get_current_user_optional),
    store: MarketStore = Depends(get_store),
) -> Optional[Profile]:
    if not current_user:
        return None

    try:
        profile = store.get_profile(current_user["sub"])
    except NotFound:
        return None

    return None if profile.is_banned else profile


def is_admin(profile: Optional[Profile]) -> bool:
    return bool(profile) and profile.role in ADMIN_ROLES


def require_admin(profile: Profile = Depends(get_profile_required)) -> Profile:
    if not is_admin(profile):
        raise HTTPException(status_code=403, detail="Admin access required")

    return profile

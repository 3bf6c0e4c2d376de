import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from jose import JWTError
from google.oauth2 import id_token
from google.auth.transport import requests as grequests

from bazaar import config
from bazaar.campuses import campus_for_email, resolve_campus
from bazaar.schemas import AuthUser, Profile
from bazaar.services.demo_data import DEMO_USER_ID
from bazaar.services.factory import get_store
from bazaar.services.store import MarketStore, NotFound, SignupsClosed
from bazaar.utils.auth_helper import (
    MAGIC_LINK_PURPOSE,
    create_access_token,
    create_magic_link_token,
    decode_token,
)
from bazaar.utils.mailer import send_magic_link

logger = logging.getLogger(__name__)

router = APIRouter()


class MagicLinkRequest(BaseModel):
    email: str


class MagicLinkVerify(BaseModel):
    token: str


class GoogleIDToken(BaseModel):
    id_token: str


class TokenResponse(BaseModel):
    access_token: str
    user: Profile
    campus: str
    deletion_pending: bool = False


def sign_in(store: MarketStore, auth_user: AuthUser) -> TokenResponse:
    campus = campus_for_email(auth_user.email)
    if not campus:
        raise HTTPException(status_code=403, detail="Use your institutional email to sign in")

    try:
        profile = store.get_current_user_profile(auth_user, campus.slug)
    except SignupsClosed as e:
        raise HTTPException(status_code=403, detail=str(e))

    return issue_token(profile)


def issue_token(profile: Profile) -> TokenResponse:
    campus = resolve_campus(profile.campus_slug, None, profile.email)
    if not campus:
        logger.error("User %s has no recognized campus configuration", profile.id)
        raise HTTPException(status_code=403, detail="No campus is configured for this account")

    if profile.is_banned:
        raise HTTPException(status_code=403, detail="Account suspended")

    return TokenResponse(
        access_token=create_access_token(profile),
        user=profile,
        campus=campus.slug,
        deletion_pending=profile.deletion_requested_at is not None,
    )


@router.post("/magic-link")
def request_magic_link(payload: MagicLinkRequest):
    email = payload.email.strip().lower()

    if not campus_for_email(email):
        raise HTTPException(status_code=400, detail="Please use a valid campus email address")

    token = create_magic_link_token(email)
    link = f"{config.APP_URL}/auth/callback?token={token}"

    sent = send_magic_link(email, link)

    response = {"ok": True, "sent": sent}

    # no mail provider in demo mode, hand the token back directly
    if not sent and not config.is_backend_configured():
        response["token"] = token

    return response


@router.post("/verify", response_model=TokenResponse)
def verify_magic_link(payload: MagicLinkVerify, store: MarketStore = Depends(get_store)):
    try:
        claims = decode_token(payload.token, MAGIC_LINK_PURPOSE)
    except JWTError:
        raise HTTPException(status_code=401, detail="Sign-in link is invalid or has expired")

    return sign_in(store, AuthUser(email=claims["sub"]))


@router.post("/google", response_model=TokenResponse)
def google_auth(payload: GoogleIDToken, store: MarketStore = Depends(get_store)):
    if not config.GOOGLE_CLIENT_ID:
        raise HTTPException(status_code=501, detail="Google sign-in is not configured")

    try:
        idinfo = id_token.verify_oauth2_token(payload.id_token, grequests.Request(), config.GOOGLE_CLIENT_ID)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid Google ID token")

    email: Optional[str] = idinfo.get("email")
    if not email or not idinfo.get("email_verified", False):
        raise HTTPException(status_code=401, detail="Google account email is not verified")

    return sign_in(store, AuthUser(email=email, name=idinfo.get("name"), avatar_url=idinfo.get("picture")))


@router.post("/demo", response_model=TokenResponse)
def demo_login(store: MarketStore = Depends(get_store)):
    if not store.is_demo:
        raise HTTPException(status_code=404, detail="Demo login is only available in demo mode")

    try:
        profile = store.get_profile(DEMO_USER_ID)
    except NotFound:
        raise HTTPException(status_code=404, detail="Demo user not found")

    return issue_token(profile)

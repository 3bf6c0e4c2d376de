import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from bazaar.campuses import get_campus
from bazaar.schemas import Profile
from bazaar.services.factory import get_store
from bazaar.services.store import MarketStore
from bazaar.utils.auth_helper import get_profile_required

logger = logging.getLogger(__name__)

router = APIRouter()


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    hostel: Optional[str] = None
    phone: Optional[str] = None
    year: Optional[str] = None
    bio: Optional[str] = None
    theme: Optional[str] = None
    avatar_url: Optional[str] = None


@router.get("/me", response_model=Profile)
def get_my_profile(profile: Profile = Depends(get_profile_required)):
    return profile


@router.patch("/me", response_model=Profile)
def update_my_profile(
    payload: ProfileUpdate,
    store: MarketStore = Depends(get_store),
    profile: Profile = Depends(get_profile_required),
):
    updates = payload.model_dump(exclude_unset=True)

    if "name" in updates and not (updates["name"] or "").strip():
        raise HTTPException(status_code=400, detail="Name cannot be empty")

    if updates.get("hostel"):
        campus = get_campus(profile.campus_slug)
        if campus and updates["hostel"] not in campus.hostels and updates["hostel"] != "Unknown":
            raise HTTPException(status_code=400, detail="Invalid hostel option")

    return store.update_user_profile(profile.id, updates)


@router.get("/me/listings")
def get_my_listings(
    store: MarketStore = Depends(get_store),
    profile: Profile = Depends(get_profile_required),
):
    listings = store.fetch_user_listings(profile.id)

    grouped = {"active": [], "sold": [], "archived": [], "flagged": []}
    for p in listings:
        grouped.setdefault(p.status.lower(), []).append(p.model_dump(mode="json", by_alias=True))

    return grouped


@router.post("/delete", response_model=Profile)
def request_account_deletion(
    store: MarketStore = Depends(get_store),
    profile: Profile = Depends(get_profile_required),
):
    logger.info("Account deletion requested by %s", profile.id)
    return store.request_account_deletion(profile.id)


@router.post("/restore", response_model=Profile)
def restore_account(
    store: MarketStore = Depends(get_store),
    profile: Profile = Depends(get_profile_required),
):
    return store.restore_account(profile.id)

from typing import List
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from bazaar.schemas import Product, Profile
from bazaar.services.factory import get_store
from bazaar.services.store import MarketStore
from bazaar.routers.listings import load_listings_by_ids, load_product
from bazaar.utils.auth_helper import get_profile_required

router = APIRouter()


class ToggleSavedRequest(BaseModel):
    is_currently_saved: bool


@router.get("/")
def get_saved_ids(
    store: MarketStore = Depends(get_store),
    profile: Profile = Depends(get_profile_required),
):
    return {"ids": sorted(store.fetch_saved_items(profile.id))}


@router.get("/listings", response_model=List[Product])
def get_saved_listings(
    store: MarketStore = Depends(get_store),
    profile: Profile = Depends(get_profile_required),
):
    return load_listings_by_ids(store, profile, sorted(store.fetch_saved_items(profile.id)))


@router.post("/{listing_id}/toggle")
def toggle_saved(
    listing_id: str,
    payload: ToggleSavedRequest,
    store: MarketStore = Depends(get_store),
    profile: Profile = Depends(get_profile_required),
):
    if not payload.is_currently_saved:
        listing_id = load_product(store, profile, listing_id).id

    store.toggle_saved_item(profile.id, listing_id, payload.is_currently_saved)

    return {"ok": True, "saved": listing_id in store.fetch_saved_items(profile.id)}

from fastapi import APIRouter, Depends

from bazaar.schemas import Profile
from bazaar.services.factory import get_store
from bazaar.services.store import MarketStore
from bazaar.routers.listings import load_listings_by_ids, load_product
from bazaar.utils.auth_helper import get_profile_required

router = APIRouter()


@router.get("/")
def get_recently_viewed(
    store: MarketStore = Depends(get_store),
    profile: Profile = Depends(get_profile_required),
):
    listings = load_listings_by_ids(store, profile, store.fetch_recently_viewed_ids(profile.id))

    return {
        "ids": [p.id for p in listings],
        "listings": [p.model_dump(mode="json", by_alias=True) for p in listings],
    }


@router.post("/{listing_id}")
def add_recently_viewed(
    listing_id: str,
    store: MarketStore = Depends(get_store),
    profile: Profile = Depends(get_profile_required),
):
    product = load_product(store, profile, listing_id)
    store.add_to_recently_viewed(profile.id, product.id)
    return {"ok": True}

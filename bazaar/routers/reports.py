import logging
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from bazaar.schemas import Profile, ReportOut
from bazaar.services.factory import get_store
from bazaar.services.store import MarketStore
from bazaar.routers.listings import load_product
from bazaar.utils.auth_helper import get_profile_required

logger = logging.getLogger(__name__)

router = APIRouter()


class ReportCreateRequest(BaseModel):
    listing_id: str
    reason: str = Field(min_length=3, max_length=280)


@router.post("/", response_model=ReportOut, status_code=201)
def report_listing(
    payload: ReportCreateRequest,
    store: MarketStore = Depends(get_store),
    profile: Profile = Depends(get_profile_required),
):
    listing = load_product(store, profile, payload.listing_id)

    if listing.seller_id == profile.id:
        raise HTTPException(status_code=400, detail="You cannot report your own listing")

    report = store.report_listing(listing.id, profile.id, payload.reason.strip())
    logger.info("Listing %s reported by %s", listing.id, profile.id)

    return report

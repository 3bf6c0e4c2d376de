import logging
import uuid
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict

from bazaar.schemas import ListingStatus, ListingTier, Product, Profile
from bazaar.services.factory import get_store
from bazaar.services.store import MarketStore, NotFound
from bazaar.utils.auth_helper import get_profile_required, is_admin
from bazaar.utils.filters import MAX_PRICE_FILTER, FilterState, apply_filters
from bazaar.utils.form_validator import validate_create_listing_form, validate_listing_update
from bazaar.utils.pricing import DONATION_PAYMENT_ID, TIER_PRICES, is_valid_payment

logger = logging.getLogger(__name__)

router = APIRouter()

# statuses a seller can move their own listing to
OWNER_STATUSES = {ListingStatus.ACTIVE.value, ListingStatus.SOLD.value, ListingStatus.ARCHIVED.value}


class ListingCreateRequest(BaseModel):
    title: str
    description: str
    price: float = 0
    original_price: Optional[float] = None
    category: str
    other_category_detail: Optional[str] = None
    condition: str
    images: List[str] = []
    is_donation: bool = False
    tier: ListingTier = ListingTier.STANDARD
    payment_id: Optional[str] = None


class ListingUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    original_price: Optional[float] = None
    category: Optional[str] = None
    condition: Optional[str] = None
    images: Optional[List[str]] = None


class CheckoutRequest(BaseModel):
    tier: ListingTier


class StatusRequest(BaseModel):
    status: ListingStatus


def filter_params(
    search: str = "",
    category: str = "All",
    hostel: str = "All",
    min_price: float = Query(0, ge=0),
    max_price: float = Query(MAX_PRICE_FILTER, ge=0),
    donation_only: bool = False,
) -> FilterState:
    return FilterState(
        search=search,
        category=category,
        hostel=hostel,
        min_price=min_price,
        max_price=max_price,
        donation_only=donation_only,
    )


def ensure_market_open(store: MarketStore, profile: Profile):
    settings = store.fetch_system_settings()

    if settings.maintenance_mode and not is_admin(profile):
        raise HTTPException(status_code=503, detail="Marketplace is under maintenance")


def load_feed(store: MarketStore, profile: Profile, filters: FilterState) -> List[Product]:
    ensure_market_open(store, profile)
    return apply_filters(store.fetch_listings(profile.campus_slug), filters)


def load_product(store: MarketStore, profile: Profile, slug: str) -> Product:
    try:
        product = store.get_listing(slug)
    except NotFound:
        raise HTTPException(status_code=404, detail="Listing not found")

    if not same_campus(profile, product):
        raise HTTPException(status_code=404, detail="Listing not found")

    return product


def same_campus(profile: Profile, product: Product) -> bool:
    # listings never leak across campuses
    return not product.campus_id or product.campus_id == profile.campus_slug or is_admin(profile)


def load_listings_by_ids(store: MarketStore, profile: Profile, ids: List[str]) -> List[Product]:
    return [p for p in store.fetch_listings_by_ids(ids) if same_campus(profile, p)]


def get_owned_listing(store: MarketStore, profile: Profile, listing_id: str) -> Product:
    product = load_product(store, profile, listing_id)

    if product.seller_id != profile.id:
        raise HTTPException(status_code=403, detail="Unauthorized to edit this listing")

    return product


@router.get("/", response_model=List[Product])
def get_listings(
    filters: FilterState = Depends(filter_params),
    store: MarketStore = Depends(get_store),
    profile: Profile = Depends(get_profile_required),
):
    return load_feed(store, profile, filters)


@router.post("/checkout")
def checkout(payload: CheckoutRequest, profile: Profile = Depends(get_profile_required)):
    """Dummy payment for the listing fee, always succeeds."""
    payment_id = f"pay_dummy_{uuid.uuid4().hex[:12]}"
    logger.info("Dummy payment %s for %s listing by %s", payment_id, payload.tier.value, profile.id)

    return {
        "payment_id": payment_id,
        "tier": payload.tier.value,
        "amount": TIER_PRICES[payload.tier.value],
        "currency": "INR",
    }


@router.post("/", response_model=Product, status_code=201)
def create_listing(
    payload: ListingCreateRequest,
    store: MarketStore = Depends(get_store),
    profile: Profile = Depends(get_profile_required),
):
    ensure_market_open(store, profile)
    settings = store.fetch_system_settings()

    form = validate_create_listing_form(payload.model_dump(), settings.price_cap_percentage)

    payment_id = DONATION_PAYMENT_ID if form.is_donation else payload.payment_id
    if not is_valid_payment(payment_id, form.is_donation):
        raise HTTPException(status_code=402, detail="Listing fee payment is required")

    return store.create_listing(form, profile, payload.tier.value, payment_id)


@router.get("/{slug}", response_model=Product)
def get_listing(
    slug: str,
    store: MarketStore = Depends(get_store),
    profile: Profile = Depends(get_profile_required),
):
    return load_product(store, profile, slug)


@router.patch("/{listing_id}", response_model=Product)
def update_listing(
    listing_id: str,
    payload: ListingUpdateRequest,
    store: MarketStore = Depends(get_store),
    profile: Profile = Depends(get_profile_required),
):
    product = get_owned_listing(store, profile, listing_id)

    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No changes provided")

    cleaned = validate_listing_update(product, updates, store.fetch_system_settings().price_cap_percentage)
    return store.update_listing(product.id, cleaned)


@router.post("/{listing_id}/status", response_model=Product)
def update_listing_status(
    listing_id: str,
    payload: StatusRequest,
    store: MarketStore = Depends(get_store),
    profile: Profile = Depends(get_profile_required),
):
    product = get_owned_listing(store, profile, listing_id)

    if payload.status.value not in OWNER_STATUSES:
        raise HTTPException(status_code=403, detail="Only moderators can flag listings")

    return store.update_listing_status(product.id, payload.status.value)

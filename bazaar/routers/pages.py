"""
Path based view routing.

Each clean path returns the payload its page needs in a single request.
Old share links used query parameters (`?product=`, `?page=`) and are
redirected to the matching clean path.
"""
from typing import Optional
from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse

from bazaar.campuses import CAMPUSES, get_campus
from bazaar.schemas import Category, Condition, ListingTier, Profile
from bazaar.services.factory import get_store
from bazaar.services.store import MarketStore
from bazaar.routers.admin import load_dashboard
from bazaar.routers.listings import filter_params, load_feed, load_listings_by_ids, load_product
from bazaar.routers.uploads import MAX_UPLOAD_SIZE_MB
from bazaar.utils.auth_helper import get_profile_optional, get_profile_required, require_admin
from bazaar.utils.filters import FilterState
from bazaar.utils.form_validator import MAX_IMAGES, MIN_IMAGES
from bazaar.utils.pricing import TIER_PRICES

router = APIRouter()

LEGACY_PAGES = {
    "landing": "/",
    "market": "/market",
    "marketplace": "/market",
    "listing": "/sell",
    "sell": "/sell",
    "profile": "/profile",
    "admin": "/admin",
}


def legacy_redirect(product: Optional[str], page: Optional[str]) -> Optional[str]:
    if product:
        return f"/product/{product}"

    if page and LEGACY_PAGES.get(page, "/") != "/":
        return LEGACY_PAGES[page]

    return None


def dump(items):
    return [i.model_dump(mode="json", by_alias=True) for i in items]


@router.get("/")
def landing(
    product: Optional[str] = None,
    page: Optional[str] = None,
    store: MarketStore = Depends(get_store),
    profile: Optional[Profile] = Depends(get_profile_optional),
):
    target = legacy_redirect(product, page)
    if target:
        return RedirectResponse(url=target, status_code=307)

    settings = store.fetch_system_settings()

    return {
        "page": "landing",
        "demo": store.is_demo,
        "user": profile.model_dump(mode="json", by_alias=True) if profile else None,
        "campuses": [{"slug": c.slug, "name": c.name} for c in CAMPUSES],
        "notice": settings.system_notice,
    }


@router.get("/market")
def market(
    filters: FilterState = Depends(filter_params),
    store: MarketStore = Depends(get_store),
    profile: Profile = Depends(get_profile_required),
):
    products = load_feed(store, profile, filters)
    recent_ids = store.fetch_recently_viewed_ids(profile.id)
    campus = get_campus(profile.campus_slug)

    return {
        "page": "market",
        "products": dump(products),
        "saved_ids": sorted(store.fetch_saved_items(profile.id)),
        "recently_viewed": dump(load_listings_by_ids(store, profile, recent_ids)),
        "hostels": campus.hostels if campus else [],
        "filters": filters.model_dump(),
    }


@router.get("/product/{slug}")
def product_detail(
    slug: str,
    store: MarketStore = Depends(get_store),
    profile: Profile = Depends(get_profile_required),
):
    product = load_product(store, profile, slug)
    store.add_to_recently_viewed(profile.id, product.id)

    return {
        "page": "product-detail",
        "product": product.model_dump(mode="json", by_alias=True),
        "is_saved": product.id in store.fetch_saved_items(profile.id),
        "is_owner": product.seller_id == profile.id,
        "share_path": f"/product/{product.slug}",
    }


@router.get("/sell")
def sell(
    store: MarketStore = Depends(get_store),
    profile: Profile = Depends(get_profile_required),
):
    settings = store.fetch_system_settings()

    return {
        "page": "listing",
        "categories": [c.value for c in Category],
        "conditions": [c.value for c in Condition],
        "tiers": [
            {"tier": t.value, "price": TIER_PRICES[t.value], "days": 30 if t == ListingTier.STANDARD else None}
            for t in ListingTier
        ],
        "price_cap_percentage": settings.price_cap_percentage,
        "images": {"min": MIN_IMAGES, "max": MAX_IMAGES, "max_size_mb": MAX_UPLOAD_SIZE_MB},
    }


@router.get("/profile")
def profile_page(
    store: MarketStore = Depends(get_store),
    profile: Profile = Depends(get_profile_required),
):
    listings = store.fetch_user_listings(profile.id)
    saved_ids = sorted(store.fetch_saved_items(profile.id))
    recent_ids = store.fetch_recently_viewed_ids(profile.id)

    return {
        "page": "profile",
        "user": profile.model_dump(mode="json", by_alias=True),
        "listings": {
            status: dump([p for p in listings if p.status == status])
            for status in ("ACTIVE", "SOLD", "ARCHIVED", "FLAGGED")
        },
        "saved": dump(load_listings_by_ids(store, profile, saved_ids)),
        "recently_viewed": dump(load_listings_by_ids(store, profile, recent_ids)),
    }


@router.get("/admin")
def admin_page(
    store: MarketStore = Depends(get_store),
    admin: Profile = Depends(require_admin),
):
    dashboard = load_dashboard(store)
    return {"page": "admin", **dashboard.model_dump(mode="json", by_alias=True)}


@router.get("/health")
def health(store: MarketStore = Depends(get_store)):
    return {"status": "ok", "mode": "demo" if store.is_demo else "backend"}

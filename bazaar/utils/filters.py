from datetime import datetime, timezone
from typing import Iterable, List, Optional
from pydantic import BaseModel

from bazaar.schemas import HIDDEN_STATUSES, ListingTier, Product

MAX_PRICE_FILTER = 10000


class FilterState(BaseModel):
    search: str = ""
    category: str = "All"
    min_price: float = 0
    max_price: float = MAX_PRICE_FILTER
    hostel: str = "All"
    donation_only: bool = False


def is_visible_in_feed(product: Product, now: Optional[datetime] = None) -> bool:
    """A listing shows in the marketplace only while it is ACTIVE and unexpired."""
    if product.status in HIDDEN_STATUSES:
        return False

    if product.type == ListingTier.STANDARD.value and product.expires_at:
        now = now or datetime.now(timezone.utc)
        expires_at = product.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at <= now:
            return False

    return True


def apply_filters(products: Iterable[Product], filters: FilterState) -> List[Product]:
    search = filters.search.strip().lower()
    result = []

    for p in products:
        if search and search not in p.title.lower():
            continue
        if filters.category != "All" and p.category != filters.category:
            continue
        if filters.hostel != "All" and p.seller_hostel != filters.hostel:
            continue
        if filters.donation_only:
            if p.price > 0:
                continue
        elif p.price < filters.min_price or p.price > filters.max_price:
            continue

        result.append(p)

    return result

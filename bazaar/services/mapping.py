"""
Conversions between database rows (wire names) and client schemas.
"""
from datetime import datetime
from typing import Dict, Optional

from bazaar.models.admin_log import AdminLog
from bazaar.models.listing import Listing
from bazaar.models.system_settings import SystemSettings
from bazaar.models.user import DEFAULT_AVATAR, User
from bazaar.schemas import AdminLogOut, ListingStatus, Product, Profile, Settings


def user_to_profile(user: User) -> Profile:
    return Profile(
        id=user.id,
        name=user.name or user.email.split("@")[0] or "Student",
        email=user.email,
        hostel=user.hostel or "Unknown",
        avatar_url=user.avatar_url or DEFAULT_AVATAR,
        phone=user.phone,
        year=user.year,
        bio=user.bio,
        role=user.role or "USER",
        is_banned=user.is_banned,
        deletion_requested_at=user.deletion_requested_at,
        theme=user.theme or "dark",
        campus_slug=user.campus_slug,
    )


def listing_to_product(listing, profile_map: Dict[str, dict]) -> Product:
    """Map a listing row (model or wire dict) plus a seller_id -> profile map."""
    row = listing.model_dump() if isinstance(listing, Listing) else dict(listing)
    seller = profile_map.get(row["seller_id"]) or {}

    return Product(
        id=row["id"],
        slug=row.get("slug") or row["id"],
        title=row["title"],
        price=float(row.get("price") or 0),
        original_price=float(row["original_price"]) if row.get("original_price") else None,
        description=row["description"],
        category=row["category"],
        condition=row["condition"],
        images=row.get("images") or [],
        seller_id=row["seller_id"],
        seller_name=seller.get("name") or "Unknown User",
        seller_hostel=seller.get("hostel") or "Unknown Hostel",
        seller_email=seller.get("email"),
        seller_phone=seller.get("phone"),
        created_at=row["created_at"],
        is_sold=row.get("status") == ListingStatus.SOLD.value,
        status=row.get("status") or ListingStatus.ACTIVE.value,
        type=row.get("type") or "STANDARD",
        expires_at=row.get("expires_at"),
        campus_id=row.get("campus_slug"),
    )


def seller_fields(user) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "hostel": user.hostel,
        "email": user.email,
        "phone": user.phone,
    }


def product_to_row(product: Product) -> dict:
    """Wire representation of a listing, as carried by change events."""
    return {
        "id": product.id,
        "slug": product.slug,
        "title": product.title,
        "description": product.description,
        "price": product.price,
        "original_price": product.original_price,
        "category": product.category,
        "condition": product.condition,
        "images": list(product.images),
        "seller_id": product.seller_id,
        "status": product.status,
        "type": product.type,
        "expires_at": _iso(product.expires_at),
        "created_at": _iso(product.created_at),
        "campus_slug": product.campus_id,
    }


def admin_log_to_out(log: AdminLog) -> AdminLogOut:
    return AdminLogOut.model_validate(log.model_dump())


def settings_to_out(row: SystemSettings) -> Settings:
    return Settings(
        price_cap_percentage=row.price_cap_percentage,
        maintenance_mode=row.maintenance_mode,
        allow_new_signups=row.allow_new_signups,
        system_notice=row.system_notice,
    )


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None

import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from bazaar import config
from bazaar.schemas import AdminLogOut, AdminStats, ListingStatus, Product, Profile, ReportOut, Settings
from bazaar.services.factory import get_store
from bazaar.services.store import MarketStore
from bazaar.utils.auth_helper import require_admin
from bazaar.utils.s3_service import delete_listing_images

logger = logging.getLogger(__name__)

router = APIRouter()


class Dashboard(BaseModel):
    stats: AdminStats
    users: List[Profile]
    listings: List[Product]
    reports: List[ReportOut]
    logs: List[AdminLogOut]
    settings: Settings


class StatusRequest(BaseModel):
    status: ListingStatus


def load_dashboard(store: MarketStore) -> Dashboard:
    return Dashboard(
        stats=store.fetch_admin_stats(),
        users=store.fetch_all_users(),
        listings=store.fetch_admin_listings(),
        reports=store.fetch_reports(),
        logs=store.fetch_system_logs(),
        settings=store.fetch_system_settings(),
    )


@router.get("/stats", response_model=AdminStats)
def get_stats(store: MarketStore = Depends(get_store), admin: Profile = Depends(require_admin)):
    return store.fetch_admin_stats()


@router.get("/users", response_model=List[Profile])
def get_users(store: MarketStore = Depends(get_store), admin: Profile = Depends(require_admin)):
    return store.fetch_all_users()


@router.post("/users/{user_id}/ban", response_model=Profile)
def ban_user(user_id: str, store: MarketStore = Depends(get_store), admin: Profile = Depends(require_admin)):
    if user_id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot ban yourself")

    user = store.ban_user(user_id)
    store.add_admin_log(admin, "BAN_USER", user.email, type="DANGER")

    return user


@router.post("/users/{user_id}/unban", response_model=Profile)
def unban_user(user_id: str, store: MarketStore = Depends(get_store), admin: Profile = Depends(require_admin)):
    user = store.unban_user(user_id)
    store.add_admin_log(admin, "UNBAN_USER", user.email, type="WARNING")

    return user


@router.get("/listings", response_model=List[Product])
def get_listings(store: MarketStore = Depends(get_store), admin: Profile = Depends(require_admin)):
    return store.fetch_admin_listings()


@router.post("/listings/{listing_id}/status", response_model=Product)
def set_listing_status(
    listing_id: str,
    payload: StatusRequest,
    store: MarketStore = Depends(get_store),
    admin: Profile = Depends(require_admin),
):
    product = store.update_listing_status(listing_id, payload.status.value)
    store.add_admin_log(admin, f"SET_STATUS_{payload.status.value}", product.title, details=product.id, type="WARNING")

    return product


@router.delete("/listings/{listing_id}")
def delete_listing(
    listing_id: str,
    store: MarketStore = Depends(get_store),
    admin: Profile = Depends(require_admin),
):
    product = store.get_listing(listing_id)

    store.delete_listing(product.id)
    delete_listing_images(product.images, config.get_demo_data_dir() if store.is_demo else None)
    store.add_admin_log(admin, "DELETE_LISTING", product.title, details=product.id, type="DANGER")

    return {"ok": True}


@router.get("/reports", response_model=List[ReportOut])
def get_reports(store: MarketStore = Depends(get_store), admin: Profile = Depends(require_admin)):
    return store.fetch_reports()


@router.post("/reports/{report_id}/dismiss")
def dismiss_report(report_id: str, store: MarketStore = Depends(get_store), admin: Profile = Depends(require_admin)):
    store.dismiss_report(report_id)
    store.add_admin_log(admin, "DISMISS_REPORT", report_id)

    return {"ok": True}


@router.get("/logs", response_model=List[AdminLogOut])
def get_logs(
    limit: int = Query(100, ge=1, le=500),
    store: MarketStore = Depends(get_store),
    admin: Profile = Depends(require_admin),
):
    return store.fetch_system_logs(limit)


@router.get("/settings", response_model=Settings)
def get_settings(store: MarketStore = Depends(get_store), admin: Profile = Depends(require_admin)):
    return store.fetch_system_settings()


@router.put("/settings", response_model=Settings)
def update_settings(payload: Settings, store: MarketStore = Depends(get_store), admin: Profile = Depends(require_admin)):
    if not 0 < payload.price_cap_percentage <= 100:
        raise HTTPException(status_code=400, detail="Price cap must be between 1 and 100 percent")

    settings = store.update_system_settings(payload)
    store.add_admin_log(admin, "UPDATE_SETTINGS", "system", details=settings.model_dump_json(by_alias=True), type="WARNING")

    return settings


@router.post("/purge-accounts")
def purge_accounts(
    store: MarketStore = Depends(get_store),
    admin: Profile = Depends(require_admin),
):
    purged = store.purge_deleted_accounts()

    if purged:
        store.add_admin_log(admin, "PURGE_ACCOUNTS", f"{len(purged)} accounts", type="DANGER")
    logger.info("Purged %d accounts scheduled for deletion", len(purged))

    return {"purged": purged}

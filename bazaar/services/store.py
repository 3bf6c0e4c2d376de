from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Set

from bazaar.schemas import (
    AdminLogOut,
    AdminStats,
    AuthUser,
    ListingForm,
    Product,
    Profile,
    ReportOut,
    Settings,
)

RECENTLY_VIEWED_DAYS = 7
RECENTLY_VIEWED_LIMIT = 20
ACCOUNT_DELETION_DAYS = 7

PROFILE_FIELDS = {"name", "hostel", "phone", "year", "bio", "theme", "avatar_url"}
LISTING_EDIT_FIELDS = {"title", "description", "price", "original_price", "category", "condition", "images"}


class StoreError(Exception):
    """A request the store refuses, mapped to HTTP 400."""


class NotFound(StoreError):
    """A missing row, mapped to HTTP 404."""


class SignupsClosed(StoreError):
    """New profiles are disabled through system settings."""


def recently_viewed_cutoff(now: datetime) -> datetime:
    return now - timedelta(days=RECENTLY_VIEWED_DAYS)


def deletion_cutoff(now: datetime) -> datetime:
    return now - timedelta(days=ACCOUNT_DELETION_DAYS)


class MarketStore(ABC):
    """
    Data access for the marketplace.

    Two implementations exist: SQLStore talks to the hosted database and
    DemoStore keeps everything in local JSON documents. Both return the same
    client schemas so callers never branch on the mode.
    """

    is_demo = False

    def __init__(self, broker=None):
        self.broker = broker

    def _publish(self, event_type: str, campus: Optional[str], new: Optional[dict] = None, old: Optional[dict] = None):
        if self.broker is not None and campus:
            self.broker.publish(event_type, campus, new=new, old=old)

    # Listings
    @abstractmethod
    def fetch_listings(self, campus: Optional[str] = None) -> List[Product]: ...

    @abstractmethod
    def fetch_admin_listings(self) -> List[Product]: ...

    @abstractmethod
    def fetch_user_listings(self, user_id: str) -> List[Product]: ...

    @abstractmethod
    def fetch_listings_by_ids(self, ids: List[str]) -> List[Product]: ...

    @abstractmethod
    def get_listing(self, slug_or_id: str) -> Product: ...

    @abstractmethod
    def create_listing(self, form: ListingForm, user: Profile, tier: str, payment_id: str) -> Product: ...

    @abstractmethod
    def update_listing(self, listing_id: str, updates: dict) -> Product: ...

    @abstractmethod
    def update_listing_status(self, listing_id: str, status: str) -> Product: ...

    @abstractmethod
    def delete_listing(self, listing_id: str) -> None: ...

    # Saved items
    @abstractmethod
    def fetch_saved_items(self, user_id: str) -> Set[str]: ...

    @abstractmethod
    def toggle_saved_item(self, user_id: str, listing_id: str, is_currently_saved: bool) -> None: ...

    # Recently viewed
    @abstractmethod
    def add_to_recently_viewed(self, user_id: str, listing_id: str, now: Optional[datetime] = None) -> None: ...

    @abstractmethod
    def fetch_recently_viewed_ids(self, user_id: str, now: Optional[datetime] = None) -> List[str]: ...

    # Reports
    @abstractmethod
    def report_listing(self, listing_id: str, reporter_id: str, reason: str) -> ReportOut: ...

    @abstractmethod
    def fetch_reports(self) -> List[ReportOut]: ...

    @abstractmethod
    def dismiss_report(self, report_id: str) -> None: ...

    # Users
    @abstractmethod
    def get_profile(self, user_id: str) -> Profile: ...

    @abstractmethod
    def get_current_user_profile(self, auth_user: AuthUser, campus_slug: str) -> Profile: ...

    @abstractmethod
    def update_user_profile(self, user_id: str, updates: dict) -> Profile: ...

    @abstractmethod
    def request_account_deletion(self, user_id: str, now: Optional[datetime] = None) -> Profile: ...

    @abstractmethod
    def restore_account(self, user_id: str) -> Profile: ...

    @abstractmethod
    def purge_deleted_accounts(self, now: Optional[datetime] = None) -> List[str]: ...

    @abstractmethod
    def fetch_all_users(self) -> List[Profile]: ...

    @abstractmethod
    def set_banned(self, user_id: str, banned: bool) -> Profile: ...

    def ban_user(self, user_id: str) -> Profile:
        return self.set_banned(user_id, True)

    def unban_user(self, user_id: str) -> Profile:
        return self.set_banned(user_id, False)

    # Admin
    @abstractmethod
    def fetch_admin_stats(self) -> AdminStats: ...

    @abstractmethod
    def add_admin_log(self, actor: Profile, action: str, target: str, details: Optional[str] = None, type: str = "INFO") -> AdminLogOut: ...

    @abstractmethod
    def fetch_system_logs(self, limit: int = 100) -> List[AdminLogOut]: ...

    @abstractmethod
    def fetch_system_settings(self) -> Settings: ...

    @abstractmethod
    def update_system_settings(self, settings: Settings) -> Settings: ...


def clean_profile_updates(updates: Dict) -> Dict:
    unknown = set(updates) - PROFILE_FIELDS
    if unknown:
        raise StoreError(f"Field '{sorted(unknown)[0]}' cannot be updated")

    if "theme" in updates and updates["theme"] not in ("dark", "light"):
        raise StoreError("Invalid theme option")

    return {k: v.strip() if isinstance(v, str) else v for k, v in updates.items()}

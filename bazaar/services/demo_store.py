import json
import logging
import os
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Set

from bazaar.models.user import DEFAULT_AVATAR
from bazaar.schemas import (
    AdminLogOut,
    AdminStats,
    AuthUser,
    ListingForm,
    ListingStatus,
    ListingTier,
    Product,
    Profile,
    ReportListing,
    ReportOut,
    ReportUser,
    Settings,
)
from bazaar.services.demo_data import MOCK_USER, mock_products
from bazaar.services.mapping import product_to_row
from bazaar.services.store import (
    LISTING_EDIT_FIELDS,
    RECENTLY_VIEWED_LIMIT,
    MarketStore,
    NotFound,
    SignupsClosed,
    StoreError,
    clean_profile_updates,
    deletion_cutoff,
    recently_viewed_cutoff,
)
from bazaar.utils.filters import is_visible_in_feed
from bazaar.utils.pricing import STANDARD_LISTING_DAYS
from bazaar.utils.slugs import listing_slug

logger = logging.getLogger(__name__)

STORAGE_KEY_PRODUCTS = "bazaar_demo_products"
STORAGE_KEY_REPORTS = "bazaar_demo_reports"
STORAGE_KEY_USERS = "bazaar_demo_users"
STORAGE_KEY_SAVED = "bazaar_demo_saved"
STORAGE_KEY_RECENT = "bazaar_demo_recent"
STORAGE_KEY_LOGS = "bazaar_demo_logs"
STORAGE_KEY_SETTINGS = "bazaar_demo_settings"


class LocalStorage:
    """Key/value JSON documents in a directory, one file per key."""

    def __init__(self, directory: str):
        self.directory = directory
        os.makedirs(directory, exist_ok=True)

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, f"{key}.json")

    def load(self, key: str, default: Any) -> Any:
        try:
            with open(self._path(key), encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return default
        except (OSError, ValueError) as e:
            logger.warning("Discarding unreadable demo storage key %s: %s", key, e)
            return default

    def save(self, key: str, data: Any):
        tmp = self._path(key) + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f)
        os.replace(tmp, self._path(key))


def _dump(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)


def _now_ms(now: datetime) -> int:
    return int(now.timestamp() * 1000)


class DemoStore(MarketStore):
    is_demo = True

    def __init__(self, directory: str, broker=None):
        super().__init__(broker)
        self.storage = LocalStorage(directory)
        self.lock = threading.RLock()

        self.products: List[dict] = self.storage.load(STORAGE_KEY_PRODUCTS, mock_products())
        self.reports: List[dict] = self.storage.load(STORAGE_KEY_REPORTS, [])
        self.users: dict = self.storage.load(STORAGE_KEY_USERS, {MOCK_USER["id"]: dict(MOCK_USER)})
        self.saved: dict = self.storage.load(STORAGE_KEY_SAVED, {})  # user_id -> [listing_id]
        self.recent: dict = self.storage.load(STORAGE_KEY_RECENT, {})  # user_id -> [{id, at}]
        self.logs: List[dict] = self.storage.load(STORAGE_KEY_LOGS, [])
        self.settings: dict = self.storage.load(STORAGE_KEY_SETTINGS, _dump(Settings()))

    # Helpers

    def _find_product(self, slug_or_id: str) -> dict:
        for p in self.products:
            if p.get("slug") == slug_or_id:
                return p

        for p in self.products:
            if p["id"] == slug_or_id:
                return p

        raise NotFound("Listing not found")

    def _find_user(self, user_id: str) -> dict:
        user = self.users.get(user_id)
        if not user:
            raise NotFound("User not found")

        return user

    def _save_products(self):
        self.storage.save(STORAGE_KEY_PRODUCTS, self.products)

    def _save_users(self):
        self.storage.save(STORAGE_KEY_USERS, self.users)

    # Listings

    def fetch_listings(self, campus: Optional[str] = None) -> List[Product]:
        with self.lock:
            products = [Product.model_validate(p) for p in self.products]

        products = [p for p in products if is_visible_in_feed(p)]
        if campus:
            products = [p for p in products if p.campus_id == campus]

        products.sort(key=lambda p: p.created_at, reverse=True)
        return products

    def fetch_admin_listings(self) -> List[Product]:
        with self.lock:
            products = [Product.model_validate(p) for p in self.products]

        products.sort(key=lambda p: p.created_at, reverse=True)
        return products

    def fetch_user_listings(self, user_id: str) -> List[Product]:
        return [p for p in self.fetch_admin_listings() if p.seller_id == user_id]

    def fetch_listings_by_ids(self, ids: List[str]) -> List[Product]:
        with self.lock:
            by_id = {p["id"]: p for p in self.products}

        return [Product.model_validate(by_id[i]) for i in ids if i in by_id]

    def get_listing(self, slug_or_id: str) -> Product:
        with self.lock:
            return Product.model_validate(self._find_product(slug_or_id))

    def create_listing(self, form: ListingForm, user: Profile, tier: str, payment_id: str) -> Product:
        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(days=STANDARD_LISTING_DAYS) if tier == ListingTier.STANDARD.value else None

        product = Product(
            id=f"p{uuid.uuid4().hex[:12]}",
            slug=listing_slug(form.title),
            title=form.title,
            description=form.description,
            price=0 if form.is_donation else form.price,
            original_price=None if form.is_donation else form.original_price,
            category=form.category.value,
            condition=form.condition.value,
            images=list(form.images),
            seller_id=user.id,
            seller_name=user.name,
            seller_hostel=user.hostel,
            seller_email=user.email,
            seller_phone=user.phone,
            created_at=now,
            status=ListingStatus.ACTIVE.value,
            type=tier,
            expires_at=expires_at,
            campus_id=user.campus_slug,
        )

        with self.lock:
            self.products = [_dump(product)] + self.products
            self._save_products()

        logger.info("Demo listing %s created by %s (payment %s)", product.id, user.id, payment_id)
        self._publish("INSERT", product.campus_id, new=product_to_row(product))

        return product

    def update_listing(self, listing_id: str, updates: dict) -> Product:
        unknown = set(updates) - LISTING_EDIT_FIELDS
        if unknown:
            raise StoreError(f"Field '{sorted(unknown)[0]}' cannot be updated")

        return self._patch_product(listing_id, updates)

    def update_listing_status(self, listing_id: str, status: str) -> Product:
        if status not in {s.value for s in ListingStatus}:
            raise StoreError("Invalid listing status")

        return self._patch_product(listing_id, {"status": status})

    def _patch_product(self, listing_id: str, updates: dict) -> Product:
        with self.lock:
            current = Product.model_validate(self._find_product(listing_id))
            old = product_to_row(current)

            product = current.model_copy(update=updates)
            product = Product.model_validate(product.model_dump())
            product.is_sold = product.status == ListingStatus.SOLD.value

            self.products = [_dump(product) if p["id"] == product.id else p for p in self.products]
            self._save_products()

        self._publish("UPDATE", product.campus_id, new=product_to_row(product), old=old)
        return product

    def delete_listing(self, listing_id: str) -> None:
        with self.lock:
            product = self._find_product(listing_id)

            self.products = [p for p in self.products if p["id"] != product["id"]]
            self.reports = [r for r in self.reports if r["listingId"] != product["id"]]
            self.saved = {u: [i for i in ids if i != product["id"]] for u, ids in self.saved.items()}
            self.recent = {u: [x for x in h if x["id"] != product["id"]] for u, h in self.recent.items()}

            self._save_products()
            self.storage.save(STORAGE_KEY_REPORTS, self.reports)
            self.storage.save(STORAGE_KEY_SAVED, self.saved)
            self.storage.save(STORAGE_KEY_RECENT, self.recent)

        self._publish("DELETE", product.get("campusId"), old={"id": product["id"]})

    # Saved items

    def fetch_saved_items(self, user_id: str) -> Set[str]:
        with self.lock:
            return set(self.saved.get(user_id, []))

    def toggle_saved_item(self, user_id: str, listing_id: str, is_currently_saved: bool) -> None:
        with self.lock:
            current = self.saved.get(user_id, [])

            if is_currently_saved:
                self.saved[user_id] = [i for i in current if i != listing_id]
            else:
                self._find_product(listing_id)
                if listing_id not in current:
                    self.saved[user_id] = current + [listing_id]

            self.storage.save(STORAGE_KEY_SAVED, self.saved)

    # Recently viewed

    def add_to_recently_viewed(self, user_id: str, listing_id: str, now: Optional[datetime] = None) -> None:
        now = now or datetime.now(timezone.utc)

        with self.lock:
            history = [x for x in self.recent.get(user_id, []) if x["id"] != listing_id]
            history.insert(0, {"id": listing_id, "at": _now_ms(now)})

            self.recent[user_id] = history[:RECENTLY_VIEWED_LIMIT]
            self.storage.save(STORAGE_KEY_RECENT, self.recent)

    def fetch_recently_viewed_ids(self, user_id: str, now: Optional[datetime] = None) -> List[str]:
        cutoff = _now_ms(recently_viewed_cutoff(now or datetime.now(timezone.utc)))

        with self.lock:
            history = self.recent.get(user_id, [])
            fresh = [x for x in history if x["at"] > cutoff]

            # prune expired entries from storage
            if len(fresh) != len(history):
                self.recent[user_id] = fresh
                self.storage.save(STORAGE_KEY_RECENT, self.recent)

        fresh = sorted(fresh, key=lambda x: x["at"], reverse=True)
        return [x["id"] for x in fresh[:RECENTLY_VIEWED_LIMIT]]

    # Reports

    def report_listing(self, listing_id: str, reporter_id: str, reason: str) -> ReportOut:
        with self.lock:
            product = self._find_product(listing_id)
            reporter = self._find_user(reporter_id)

            report = ReportOut(
                id=f"r{uuid.uuid4().hex[:12]}",
                listing_id=product["id"],
                reporter_id=reporter_id,
                reason=reason,
                created_at=datetime.now(timezone.utc),
                listing=ReportListing(
                    id=product["id"],
                    title=product["title"],
                    slug=product.get("slug"),
                    seller_id=product["sellerId"],
                    seller_name=product.get("sellerName") or "Unknown",
                    seller_email=product.get("sellerEmail"),
                ),
                reporter=ReportUser(id=reporter["id"], name=reporter.get("name"), email=reporter.get("email")),
            )

            self.reports.append(_dump(report))
            self.storage.save(STORAGE_KEY_REPORTS, self.reports)

        return report

    def fetch_reports(self) -> List[ReportOut]:
        with self.lock:
            reports = [ReportOut.model_validate(r) for r in self.reports]

        reports.sort(key=lambda r: r.created_at, reverse=True)
        return reports

    def dismiss_report(self, report_id: str) -> None:
        with self.lock:
            if not any(r["id"] == report_id for r in self.reports):
                raise NotFound("Report not found")

            self.reports = [r for r in self.reports if r["id"] != report_id]
            self.storage.save(STORAGE_KEY_REPORTS, self.reports)

    # Users

    def get_profile(self, user_id: str) -> Profile:
        with self.lock:
            return Profile.model_validate(self._find_user(user_id))

    def get_current_user_profile(self, auth_user: AuthUser, campus_slug: str) -> Profile:
        email = auth_user.email.strip().lower()

        with self.lock:
            for user in self.users.values():
                if user["email"].lower() == email:
                    return Profile.model_validate(user)

            if not self.settings.get("allowNewSignups", True):
                raise SignupsClosed("New signups are currently disabled")

            profile = Profile(
                id=str(uuid.uuid4()),
                email=email,
                name=auth_user.name or email.split("@")[0] or "Student",
                avatar_url=auth_user.avatar_url or DEFAULT_AVATAR,
                campus_slug=campus_slug,
            )

            self.users[profile.id] = _dump(profile)
            self._save_users()

        return profile

    def update_user_profile(self, user_id: str, updates: dict) -> Profile:
        updates = clean_profile_updates(updates)

        with self.lock:
            current = Profile.model_validate(self._find_user(user_id))
            updated = Profile.model_validate({**current.model_dump(), **updates})

            self.users[user_id] = _dump(updated)
            self._save_users()

        return updated

    def _set_user_field(self, user_id: str, field: str, value) -> Profile:
        with self.lock:
            current = Profile.model_validate(self._find_user(user_id))
            updated = current.model_copy(update={field: value})

            self.users[user_id] = _dump(updated)
            self._save_users()

        return updated

    def request_account_deletion(self, user_id: str, now: Optional[datetime] = None) -> Profile:
        return self._set_user_field(user_id, "deletion_requested_at", now or datetime.now(timezone.utc))

    def restore_account(self, user_id: str) -> Profile:
        return self._set_user_field(user_id, "deletion_requested_at", None)

    def purge_deleted_accounts(self, now: Optional[datetime] = None) -> List[str]:
        cutoff = deletion_cutoff(now or datetime.now(timezone.utc))

        with self.lock:
            profiles = [Profile.model_validate(u) for u in self.users.values()]
            doomed = [
                p.id for p in profiles
                if p.deletion_requested_at and _aware(p.deletion_requested_at) <= cutoff
            ]

        for user_id in doomed:
            for product in self.fetch_user_listings(user_id):
                self.delete_listing(product.id)

            with self.lock:
                self.users.pop(user_id, None)
                self.saved.pop(user_id, None)
                self.recent.pop(user_id, None)
                self.reports = [r for r in self.reports if r["reporterId"] != user_id]

                self._save_users()
                self.storage.save(STORAGE_KEY_SAVED, self.saved)
                self.storage.save(STORAGE_KEY_RECENT, self.recent)
                self.storage.save(STORAGE_KEY_REPORTS, self.reports)

        return doomed

    def fetch_all_users(self) -> List[Profile]:
        with self.lock:
            return [Profile.model_validate(u) for u in self.users.values()]

    def set_banned(self, user_id: str, banned: bool) -> Profile:
        return self._set_user_field(user_id, "is_banned", banned)

    # Admin

    def fetch_admin_stats(self) -> AdminStats:
        with self.lock:
            users = list(self.users.values())
            products = list(self.products)
            reports = len(self.reports)

        return AdminStats(
            total_users=len(users),
            banned_users=sum(1 for u in users if u.get("isBanned")),
            total_listings=len(products),
            active_listings=sum(1 for p in products if p.get("status") == ListingStatus.ACTIVE.value),
            donations=sum(1 for p in products if not p.get("price")),
            open_reports=reports,
        )

    def add_admin_log(self, actor: Profile, action: str, target: str, details: Optional[str] = None, type: str = "INFO") -> AdminLogOut:
        log = AdminLogOut(
            id=f"l{uuid.uuid4().hex[:12]}",
            actor_id=actor.id,
            actor_name=actor.name,
            action=action,
            target=target,
            details=details,
            timestamp=datetime.now(timezone.utc),
            type=type,
        )

        with self.lock:
            self.logs.insert(0, _dump(log))
            self.storage.save(STORAGE_KEY_LOGS, self.logs)

        return log

    def fetch_system_logs(self, limit: int = 100) -> List[AdminLogOut]:
        with self.lock:
            logs = [AdminLogOut.model_validate(l) for l in self.logs]

        logs.sort(key=lambda l: l.timestamp, reverse=True)
        return logs[:limit]

    def fetch_system_settings(self) -> Settings:
        with self.lock:
            return Settings.model_validate(self.settings)

    def update_system_settings(self, settings: Settings) -> Settings:
        with self.lock:
            self.settings = _dump(settings)
            self.storage.save(STORAGE_KEY_SETTINGS, self.settings)

        return settings


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

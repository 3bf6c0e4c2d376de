import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Set

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, func, select

from bazaar.models.admin_log import AdminLog
from bazaar.models.listing import Listing
from bazaar.models.recently_viewed import RecentlyViewed
from bazaar.models.report import Report
from bazaar.models.saved_item import SavedItem
from bazaar.models.system_settings import SystemSettings
from bazaar.models.user import DEFAULT_AVATAR, User
from bazaar.schemas import (
    AdminLogOut,
    AdminStats,
    AuthUser,
    HIDDEN_STATUSES,
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
from bazaar.services.mapping import (
    admin_log_to_out,
    listing_to_product,
    product_to_row,
    seller_fields,
    settings_to_out,
    user_to_profile,
)
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


class SQLStore(MarketStore):
    def __init__(self, engine, broker=None):
        super().__init__(broker)
        self.engine = engine

    # Helpers

    def _hydrate(self, session: Session, listings: List[Listing]) -> List[Product]:
        seller_ids = list({l.seller_id for l in listings})
        if not seller_ids:
            return []

        sellers = session.exec(select(User).where(col(User.id).in_(seller_ids))).all()
        profile_map = {s.id: seller_fields(s) for s in sellers}

        return [listing_to_product(l, profile_map) for l in listings]

    def _get_listing_row(self, session: Session, slug_or_id: str) -> Listing:
        listing = session.exec(select(Listing).where(Listing.slug == slug_or_id)).first()

        if not listing:
            listing = session.get(Listing, slug_or_id)

        if not listing:
            raise NotFound("Listing not found")

        return listing

    def _get_user_row(self, session: Session, user_id: str) -> User:
        user = session.get(User, user_id)
        if not user:
            raise NotFound("User not found")

        return user

    def _settings_row(self, session: Session) -> SystemSettings:
        row = session.get(SystemSettings, 1)

        if not row:
            row = SystemSettings(id=1)
            session.add(row)
            session.commit()
            session.refresh(row)

        return row

    # Listings

    def fetch_listings(self, campus: Optional[str] = None) -> List[Product]:
        with Session(self.engine) as session:
            query = (
                select(Listing)
                .where(col(Listing.status).not_in(sorted(HIDDEN_STATUSES)))
                .order_by(col(Listing.created_at).desc())
            )

            if campus:
                query = query.where(Listing.campus_slug == campus)

            listings = session.exec(query).all()
            products = self._hydrate(session, listings)

        # expiry is compared in Python since sqlite drops tzinfo
        return [p for p in products if is_visible_in_feed(p)]

    def fetch_admin_listings(self) -> List[Product]:
        with Session(self.engine) as session:
            listings = session.exec(select(Listing).order_by(col(Listing.created_at).desc())).all()
            return self._hydrate(session, listings)

    def fetch_user_listings(self, user_id: str) -> List[Product]:
        with Session(self.engine) as session:
            listings = session.exec(
                select(Listing)
                .where(Listing.seller_id == user_id)
                .order_by(col(Listing.created_at).desc())
            ).all()
            return self._hydrate(session, listings)

    def fetch_listings_by_ids(self, ids: List[str]) -> List[Product]:
        if not ids:
            return []

        with Session(self.engine) as session:
            listings = session.exec(select(Listing).where(col(Listing.id).in_(ids))).all()
            by_id = {p.id: p for p in self._hydrate(session, listings)}

        # keep caller's order
        return [by_id[i] for i in ids if i in by_id]

    def get_listing(self, slug_or_id: str) -> Product:
        with Session(self.engine) as session:
            listing = self._get_listing_row(session, slug_or_id)
            return self._hydrate(session, [listing])[0]

    def create_listing(self, form: ListingForm, user: Profile, tier: str, payment_id: str) -> Product:
        expires_at = None
        if tier == ListingTier.STANDARD.value:
            expires_at = datetime.now(timezone.utc) + timedelta(days=STANDARD_LISTING_DAYS)

        with Session(self.engine) as session:
            listing = Listing(
                slug=listing_slug(form.title),
                seller_id=user.id,
                title=form.title,
                description=form.description,
                price=0 if form.is_donation else form.price,
                original_price=None if form.is_donation else form.original_price,
                category=form.category.value,
                condition=form.condition.value,
                images=list(form.images),
                is_donation=form.is_donation,
                type=tier,
                expires_at=expires_at,
                payment_status="PAID",
            )

            session.add(listing)
            session.commit()
            session.refresh(listing)

            product = self._hydrate(session, [listing])[0]

        logger.info("Listing %s created by %s (payment %s)", product.id, user.id, payment_id)
        self._publish("INSERT", product.campus_id, new=product_to_row(product))

        return product

    def update_listing(self, listing_id: str, updates: dict) -> Product:
        unknown = set(updates) - LISTING_EDIT_FIELDS
        if unknown:
            raise StoreError(f"Field '{sorted(unknown)[0]}' cannot be updated")

        return self._apply_updates(listing_id, updates)

    def update_listing_status(self, listing_id: str, status: str) -> Product:
        if status not in {s.value for s in ListingStatus}:
            raise StoreError("Invalid listing status")

        return self._apply_updates(listing_id, {"status": status})

    def _apply_updates(self, listing_id: str, fields: dict) -> Product:
        with Session(self.engine) as session:
            listing = self._get_listing_row(session, listing_id)
            old = product_to_row(self._hydrate(session, [listing])[0])

            for field, value in fields.items():
                setattr(listing, field, value)

            session.add(listing)
            session.commit()
            session.refresh(listing)

            product = self._hydrate(session, [listing])[0]

        self._publish("UPDATE", product.campus_id, new=product_to_row(product), old=old)
        return product

    def delete_listing(self, listing_id: str) -> None:
        with Session(self.engine) as session:
            listing = self._get_listing_row(session, listing_id)
            campus = listing.campus_slug
            old = {"id": listing.id}

            # Delete dependent rows first, sqlite does not enforce cascades
            for model in (Report, SavedItem, RecentlyViewed):
                rows = session.exec(select(model).where(model.listing_id == listing.id)).all()
                for row in rows:
                    session.delete(row)

            session.delete(listing)
            session.commit()

        self._publish("DELETE", campus, old=old)

    # Saved items

    def fetch_saved_items(self, user_id: str) -> Set[str]:
        try:
            with Session(self.engine) as session:
                rows = session.exec(select(SavedItem.listing_id).where(SavedItem.user_id == user_id)).all()
        except Exception as e:
            logger.debug("Error fetching saved items for %s: %s", user_id, e)
            return set()

        return set(rows)

    def toggle_saved_item(self, user_id: str, listing_id: str, is_currently_saved: bool) -> None:
        with Session(self.engine) as session:
            existing = session.exec(
                select(SavedItem)
                .where(SavedItem.user_id == user_id)
                .where(SavedItem.listing_id == listing_id)
            ).first()

            if is_currently_saved:
                if existing:
                    session.delete(existing)
                    session.commit()
                return

            if existing:
                return

            self._get_listing_row(session, listing_id)

            session.add(SavedItem(user_id=user_id, listing_id=listing_id))
            try:
                session.commit()
            except IntegrityError:
                # a concurrent request saved it first
                session.rollback()

    # Recently viewed

    def add_to_recently_viewed(self, user_id: str, listing_id: str, now: Optional[datetime] = None) -> None:
        now = now or datetime.now(timezone.utc)

        try:
            with Session(self.engine) as session:
                row = session.exec(
                    select(RecentlyViewed)
                    .where(RecentlyViewed.user_id == user_id)
                    .where(RecentlyViewed.listing_id == listing_id)
                ).first()

                if row:
                    row.viewed_at = now
                else:
                    row = RecentlyViewed(user_id=user_id, listing_id=listing_id, viewed_at=now)

                session.add(row)
                session.commit()

                stale = session.exec(
                    select(RecentlyViewed)
                    .where(RecentlyViewed.user_id == user_id)
                    .order_by(col(RecentlyViewed.viewed_at).desc())
                    .offset(RECENTLY_VIEWED_LIMIT)
                ).all()

                if stale:
                    for old in stale:
                        session.delete(old)
                    session.commit()
        except Exception as e:
            logger.debug("Failed to update history for %s: %s", user_id, e)

    def fetch_recently_viewed_ids(self, user_id: str, now: Optional[datetime] = None) -> List[str]:
        cutoff = recently_viewed_cutoff(now or datetime.now(timezone.utc))

        try:
            with Session(self.engine) as session:
                rows = session.exec(
                    select(RecentlyViewed.listing_id)
                    .where(RecentlyViewed.user_id == user_id)
                    .where(RecentlyViewed.viewed_at >= cutoff)
                    .order_by(col(RecentlyViewed.viewed_at).desc())
                    .limit(RECENTLY_VIEWED_LIMIT)
                ).all()
        except Exception as e:
            logger.debug("Failed to load history for %s: %s", user_id, e)
            return []

        return list(rows)

    # Reports

    def report_listing(self, listing_id: str, reporter_id: str, reason: str) -> ReportOut:
        with Session(self.engine) as session:
            listing = self._get_listing_row(session, listing_id)
            reporter = self._get_user_row(session, reporter_id)

            report = Report(listing_id=listing.id, reporter_id=reporter.id, reason=reason)
            session.add(report)
            session.commit()
            session.refresh(report)

            return self._report_out(session, report, listing, reporter)

    def _report_out(self, session: Session, report: Report, listing: Listing, reporter: Optional[User]) -> ReportOut:
        seller = session.get(User, listing.seller_id)

        return ReportOut(
            id=report.id,
            listing_id=report.listing_id,
            reporter_id=report.reporter_id,
            reason=report.reason,
            created_at=report.created_at,
            listing=ReportListing(
                id=listing.id,
                title=listing.title,
                slug=listing.slug,
                seller_id=listing.seller_id,
                seller_name=seller.name if seller else "Unknown",
                seller_email=seller.email if seller else None,
            ),
            reporter=ReportUser(
                id=reporter.id if reporter else None,
                name=reporter.name if reporter else None,
                email=reporter.email if reporter else None,
            ),
        )

    def fetch_reports(self) -> List[ReportOut]:
        with Session(self.engine) as session:
            results = session.exec(
                select(Report, Listing)
                .join(Listing, Report.listing_id == Listing.id)
                .order_by(col(Report.created_at).desc())
            ).all()

            return [
                self._report_out(session, report, listing, session.get(User, report.reporter_id))
                for report, listing in results
            ]

    def dismiss_report(self, report_id: str) -> None:
        with Session(self.engine) as session:
            report = session.get(Report, report_id)
            if not report:
                raise NotFound("Report not found")

            session.delete(report)
            session.commit()

    # Users

    def get_profile(self, user_id: str) -> Profile:
        with Session(self.engine) as session:
            return user_to_profile(self._get_user_row(session, user_id))

    def get_current_user_profile(self, auth_user: AuthUser, campus_slug: str) -> Profile:
        email = auth_user.email.strip().lower()

        with Session(self.engine) as session:
            user = session.exec(select(User).where(User.email == email)).first()

            if user:
                return user_to_profile(user)

            if not self._settings_row(session).allow_new_signups:
                raise SignupsClosed("New signups are currently disabled")

            logger.info("Profile not found, creating new profile for %s", email)

            user = User(
                email=email,
                name=auth_user.name or email.split("@")[0] or "Student",
                avatar_url=auth_user.avatar_url or DEFAULT_AVATAR,
                role="USER",
                hostel="Unknown",
                theme="dark",
                campus_slug=campus_slug,
            )

            session.add(user)
            try:
                session.commit()
            except IntegrityError:
                # two first logins raced, use the row that won
                session.rollback()
                user = session.exec(select(User).where(User.email == email)).one()
            else:
                session.refresh(user)

            return user_to_profile(user)

    def update_user_profile(self, user_id: str, updates: dict) -> Profile:
        updates = clean_profile_updates(updates)

        with Session(self.engine) as session:
            user = self._get_user_row(session, user_id)

            for field, value in updates.items():
                setattr(user, field, value)

            session.add(user)
            session.commit()
            session.refresh(user)

            return user_to_profile(user)

    def _set_deletion(self, user_id: str, value: Optional[datetime]) -> Profile:
        with Session(self.engine) as session:
            user = self._get_user_row(session, user_id)
            user.deletion_requested_at = value

            session.add(user)
            session.commit()
            session.refresh(user)

            return user_to_profile(user)

    def request_account_deletion(self, user_id: str, now: Optional[datetime] = None) -> Profile:
        return self._set_deletion(user_id, now or datetime.now(timezone.utc))

    def restore_account(self, user_id: str) -> Profile:
        return self._set_deletion(user_id, None)

    def purge_deleted_accounts(self, now: Optional[datetime] = None) -> List[str]:
        cutoff = deletion_cutoff(now or datetime.now(timezone.utc))

        with Session(self.engine) as session:
            users = session.exec(
                select(User)
                .where(col(User.deletion_requested_at).is_not(None))
                .where(col(User.deletion_requested_at) <= cutoff)
            ).all()
            user_ids = [u.id for u in users]

        purged = []
        for user_id in user_ids:
            for listing in self.fetch_user_listings(user_id):
                self.delete_listing(listing.id)

            with Session(self.engine) as session:
                for model, column in ((SavedItem, SavedItem.user_id), (RecentlyViewed, RecentlyViewed.user_id), (Report, Report.reporter_id)):
                    for row in session.exec(select(model).where(column == user_id)).all():
                        session.delete(row)

                user = session.get(User, user_id)
                session.delete(user)
                session.commit()

            purged.append(user_id)

        return purged

    def fetch_all_users(self) -> List[Profile]:
        with Session(self.engine) as session:
            users = session.exec(select(User).order_by(col(User.created_at).desc())).all()
            return [user_to_profile(u) for u in users]

    def set_banned(self, user_id: str, banned: bool) -> Profile:
        with Session(self.engine) as session:
            user = self._get_user_row(session, user_id)
            user.is_banned = banned

            session.add(user)
            session.commit()
            session.refresh(user)

            return user_to_profile(user)

    # Admin

    def fetch_admin_stats(self) -> AdminStats:
        with Session(self.engine) as session:
            return AdminStats(
                total_users=session.exec(select(func.count(User.id))).one(),
                banned_users=session.exec(select(func.count(User.id)).where(User.is_banned == True)).one(),  # noqa: E712
                total_listings=session.exec(select(func.count(Listing.id))).one(),
                active_listings=session.exec(
                    select(func.count(Listing.id)).where(Listing.status == ListingStatus.ACTIVE.value)
                ).one(),
                donations=session.exec(select(func.count(Listing.id)).where(Listing.price == 0)).one(),
                open_reports=session.exec(select(func.count(Report.id))).one(),
            )

    def add_admin_log(self, actor: Profile, action: str, target: str, details: Optional[str] = None, type: str = "INFO") -> AdminLogOut:
        with Session(self.engine) as session:
            log = AdminLog(
                actor_id=actor.id,
                actor_name=actor.name,
                action=action,
                target=target,
                details=details,
                type=type,
            )

            session.add(log)
            session.commit()
            session.refresh(log)

            return admin_log_to_out(log)

    def fetch_system_logs(self, limit: int = 100) -> List[AdminLogOut]:
        with Session(self.engine) as session:
            logs = session.exec(select(AdminLog).order_by(col(AdminLog.timestamp).desc()).limit(limit)).all()
            return [admin_log_to_out(l) for l in logs]

    def fetch_system_settings(self) -> Settings:
        with Session(self.engine) as session:
            return settings_to_out(self._settings_row(session))

    def update_system_settings(self, settings: Settings) -> Settings:
        with Session(self.engine) as session:
            row = self._settings_row(session)

            row.price_cap_percentage = settings.price_cap_percentage
            row.maintenance_mode = settings.maintenance_mode
            row.allow_new_signups = settings.allow_new_signups
            row.system_notice = settings.system_notice

            session.add(row)
            session.commit()
            session.refresh(row)

            return settings_to_out(row)

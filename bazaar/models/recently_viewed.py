from sqlmodel import Field, SQLModel, UniqueConstraint
from datetime import datetime, timezone
from typing import Optional


class RecentlyViewed(SQLModel, table=True):
    __tablename__ = "recently_viewed"

    id: Optional[int] = Field(default=None, primary_key=True)

    user_id: str = Field(foreign_key="profiles.id", index=True)
    listing_id: str = Field(foreign_key="listings.id", ondelete="CASCADE")
    viewed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "listing_id",
            name="uq_user_recent_listing"
        ),
    )

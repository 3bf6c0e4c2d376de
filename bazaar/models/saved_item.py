from sqlmodel import Field, SQLModel, UniqueConstraint
from datetime import datetime, timezone
from typing import Optional


class SavedItem(SQLModel, table=True):
    __tablename__ = "saved_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    user_id: str = Field(foreign_key="profiles.id", index=True)
    listing_id: str = Field(foreign_key="listings.id", index=True, ondelete="CASCADE")

    __table_args__ = (
        # A listing can be saved at most once per user, so double clicks upsert
        UniqueConstraint(
            "user_id",
            "listing_id",
            name="uq_user_saved_listing"
        ),
    )

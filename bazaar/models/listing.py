import uuid
from typing import List, Optional
from sqlalchemy import JSON, Column, event
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone

from bazaar.models.user import User


class CampusMismatchError(ValueError):
    pass


class Listing(SQLModel, table=True):
    __tablename__ = "listings"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    slug: str = Field(index=True, unique=True)

    # Seller info
    seller_id: str = Field(foreign_key="profiles.id", index=True)
    campus_slug: Optional[str] = Field(default=None, index=True)

    # Listing fields
    title: str
    description: str
    price: float = Field(default=0)  # 0 means donation
    original_price: Optional[float] = Field(default=None)
    category: str
    condition: str
    images: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    is_donation: bool = Field(default=False)

    # Lifecycle
    status: str = Field(default="ACTIVE", index=True)  # ACTIVE, SOLD, ARCHIVED, FLAGGED
    type: str = Field(default="STANDARD")  # STANDARD (30 days) or FOREVER
    expires_at: Optional[datetime] = Field(default=None)
    payment_status: str = Field(default="PAID")


def _stamp_seller_campus(mapper, connection, target: Listing):
    # a listing always lives on its seller's campus
    row = connection.execute(
        User.__table__.select().where(User.__table__.c.id == target.seller_id)
    ).first()

    if row is None:
        raise CampusMismatchError(f"Seller {target.seller_id} does not exist")

    seller_campus = row._mapping["campus_slug"]

    if target.campus_slug and target.campus_slug != seller_campus:
        raise CampusMismatchError(
            f"Listing campus '{target.campus_slug}' does not match seller campus '{seller_campus}'"
        )

    target.campus_slug = seller_campus


event.listen(Listing, "before_insert", _stamp_seller_campus)
event.listen(Listing, "before_update", _stamp_seller_campus)

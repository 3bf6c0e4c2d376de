import uuid
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone


class Report(SQLModel, table=True):
    __tablename__ = "reports"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Reporter info
    reporter_id: str = Field(foreign_key="profiles.id")

    listing_id: str = Field(foreign_key="listings.id", index=True, ondelete="CASCADE")

    # Report fields
    reason: str

import uuid
from typing import Optional
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone

DEFAULT_AVATAR = "https://cdn-icons-png.flaticon.com/512/149/149071.png"


class User(SQLModel, table=True):
    __tablename__ = "profiles"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    name: str
    email: str = Field(index=True, unique=True)
    hostel: str = Field(default="Unknown")
    avatar_url: str = Field(default=DEFAULT_AVATAR)
    phone: Optional[str] = Field(default=None)
    year: Optional[str] = Field(default=None)
    bio: Optional[str] = Field(default=None)

    role: str = Field(default="USER")  # Possible roles: USER, ADMIN, SUPER_ADMIN, MODERATOR
    is_banned: bool = Field(default=False)
    deletion_requested_at: Optional[datetime] = Field(default=None)
    theme: str = Field(default="dark")  # dark/light

    campus_slug: str = Field(index=True)

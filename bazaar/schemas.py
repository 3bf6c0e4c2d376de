from enum import Enum
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Category(str, Enum):
    ELECTRONICS = "Electronics"
    BOOKS = "Books"
    CYCLES = "Cycles"
    FURNITURE = "Furniture"
    STATIONERY = "Stationery"
    CLOTHING = "Clothing"
    OTHER = "Other"


class Condition(str, Enum):
    NEW = "New"
    LIKE_NEW = "Like New"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"


class ListingStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SOLD = "SOLD"
    ARCHIVED = "ARCHIVED"
    FLAGGED = "FLAGGED"


class ListingTier(str, Enum):
    STANDARD = "STANDARD"
    FOREVER = "FOREVER"


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"
    MODERATOR = "MODERATOR"


ADMIN_ROLES = {Role.ADMIN.value, Role.SUPER_ADMIN.value}

# statuses that keep a listing out of the marketplace feed
HIDDEN_STATUSES = {ListingStatus.SOLD.value, ListingStatus.ARCHIVED.value, ListingStatus.FLAGGED.value}


class ClientModel(BaseModel):
    """Base for payloads sent to the client: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Profile(ClientModel):
    id: str
    name: str
    email: str
    hostel: str = "Unknown"
    avatar_url: str
    phone: Optional[str] = None
    year: Optional[str] = None
    bio: Optional[str] = None
    role: str = Role.USER.value
    is_banned: bool = False
    deletion_requested_at: Optional[datetime] = None
    theme: str = "dark"
    campus_slug: Optional[str] = None


class Product(ClientModel):
    id: str
    slug: str
    title: str
    price: float
    original_price: Optional[float] = None
    description: str
    category: str
    condition: str
    images: List[str] = Field(default_factory=list)
    seller_id: str
    seller_name: str = "Unknown User"
    seller_hostel: str = "Unknown Hostel"
    seller_email: Optional[str] = None
    seller_phone: Optional[str] = None
    created_at: datetime
    likes: int = 0
    is_sold: bool = False
    status: str = ListingStatus.ACTIVE.value
    type: str = ListingTier.STANDARD.value
    expires_at: Optional[datetime] = None
    campus_id: Optional[str] = None


class ReportListing(ClientModel):
    id: str
    title: Optional[str] = None
    slug: Optional[str] = None
    seller_id: Optional[str] = None
    seller_name: str = "Unknown"
    seller_email: Optional[str] = None


class ReportUser(ClientModel):
    id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None


class ReportOut(ClientModel):
    id: str
    listing_id: str
    reporter_id: str
    reason: str
    created_at: datetime
    listing: Optional[ReportListing] = None
    reporter: Optional[ReportUser] = None


class AdminLogOut(ClientModel):
    id: str
    actor_id: str
    actor_name: str
    action: str
    target: str
    details: Optional[str] = None
    timestamp: datetime
    type: str = "INFO"


class Settings(ClientModel):
    price_cap_percentage: float = 80
    maintenance_mode: bool = False
    allow_new_signups: bool = True
    system_notice: str = ""


class AdminStats(ClientModel):
    total_users: int
    banned_users: int
    total_listings: int
    active_listings: int
    donations: int
    open_reports: int


class ListingForm(BaseModel):
    """Validated listing submission, see bazaar.utils.form_validator."""

    title: str
    description: str
    price: float = 0
    original_price: Optional[float] = None
    category: Category
    condition: Condition
    images: List[str]
    is_donation: bool = False


class AuthUser(BaseModel):
    """Identity asserted by the sign-in provider before a profile exists."""

    email: str
    name: Optional[str] = None
    avatar_url: Optional[str] = None

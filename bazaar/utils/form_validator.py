from typing import List, Optional
from fastapi import HTTPException
from pydantic import BaseModel, Field, ValidationError, model_validator

from bazaar.schemas import Category, Condition, ListingForm, Product
from bazaar.utils.pricing import PriceCapExceeded, check_price_cap

MIN_IMAGES = 1
MAX_IMAGES = 5


class ValidatedCreateListing(BaseModel):
    title: str = Field(min_length=3, max_length=80)
    description: str = Field(min_length=10, max_length=1000)
    price: float = Field(default=0, ge=0)
    original_price: Optional[float] = Field(default=None, gt=0)
    category: Category
    other_category_detail: Optional[str] = Field(default=None, max_length=40)
    condition: Condition
    images: List[str] = Field(min_length=MIN_IMAGES, max_length=MAX_IMAGES)
    is_donation: bool = False

    @model_validator(mode="after")
    def check_price(self):
        if self.is_donation:
            self.price = 0
            self.original_price = None
        elif self.price <= 0:
            raise ValueError("A selling price is required unless the item is a donation")

        return self


def validate_create_listing_form(payload: dict, price_cap_percentage: float) -> ListingForm:
    cleaned = dict(payload)

    for field in ("title", "description", "other_category_detail"):
        if isinstance(cleaned.get(field), str):
            cleaned[field] = cleaned[field].strip()

    try:
        validated = ValidatedCreateListing(**cleaned)
    except ValidationError as e:
        raise HTTPException(
            status_code=400,
            detail=e.errors(include_url=False, include_context=False),
        )

    try:
        check_price_cap(validated.price, validated.original_price, price_cap_percentage)
    except PriceCapExceeded as e:
        raise HTTPException(status_code=400, detail=str(e))

    description = validated.description
    if validated.category == Category.OTHER and validated.other_category_detail:
        description = f"[Item Type: {validated.other_category_detail}]\n\n{description}"

    return ListingForm(
        title=validated.title,
        description=description,
        price=validated.price,
        original_price=validated.original_price,
        category=validated.category,
        condition=validated.condition,
        images=validated.images,
        is_donation=validated.is_donation,
    )


def validate_listing_update(current: Product, updates: dict, price_cap_percentage: float) -> dict:
    """
    Apply an owner's edit to the current listing and re-run the listing form rules.

    Returns only the edited fields, cleaned. A listing posted as a donation
    stays a donation.
    """
    merged = {
        "title": current.title,
        "description": current.description,
        "price": current.price,
        "original_price": current.original_price,
        "category": current.category,
        "condition": current.condition,
        "images": current.images,
        "is_donation": current.price == 0,
    }
    merged.update(updates)

    for field in ("title", "description"):
        if isinstance(merged.get(field), str):
            merged[field] = merged[field].strip()

    try:
        validated = ValidatedCreateListing(**merged)
    except ValidationError as e:
        raise HTTPException(
            status_code=400,
            detail=e.errors(include_url=False, include_context=False),
        )

    try:
        check_price_cap(validated.price, validated.original_price, price_cap_percentage)
    except PriceCapExceeded as e:
        raise HTTPException(status_code=400, detail=str(e))

    return validated.model_dump(include=set(updates), mode="json")

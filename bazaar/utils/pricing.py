from typing import Optional

from bazaar.schemas import ListingTier

DONATION_PAYMENT_ID = "donation_free"

# listing fee in INR, charged through the dummy checkout
TIER_PRICES = {
    ListingTier.STANDARD.value: 10,
    ListingTier.FOREVER.value: 49,
}

STANDARD_LISTING_DAYS = 30


class PriceCapExceeded(ValueError):
    pass


def max_selling_price(original_price: float, price_cap_percentage: float) -> float:
    return round(original_price * price_cap_percentage / 100, 2)


def check_price_cap(price: float, original_price: Optional[float], price_cap_percentage: float):
    """
    Reject a selling price above the allowed share of the original MRP.

    Listings without an MRP are not capped.
    """
    if not original_price or price <= 0:
        return

    cap = max_selling_price(original_price, price_cap_percentage)
    if price > cap:
        raise PriceCapExceeded(
            f"Selling price cannot exceed {price_cap_percentage:g}% of the original price (max ₹{cap:g})"
        )


def is_valid_payment(payment_id: Optional[str], is_donation: bool) -> bool:
    if is_donation:
        return True

    return bool(payment_id) and payment_id.startswith("pay_")

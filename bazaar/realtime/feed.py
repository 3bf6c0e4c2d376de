import logging
from typing import Callable, List, Optional

from bazaar.realtime.broker import ChangeEvent
from bazaar.schemas import ListingStatus, Product

logger = logging.getLogger(__name__)


class LiveListings:
    """
    Client-side listings state kept in sync with change events.

    `fetch_all` returns the initial feed. `fetch_one` re-reads a single
    listing with its seller details, so inserts never show partial rows.
    """

    def __init__(self, fetch_all: Callable[[], List[Product]], fetch_one: Callable[[str], Optional[Product]]):
        self.fetch_all = fetch_all
        self.fetch_one = fetch_one
        self.products: List[Product] = []
        self.loading = False
        self.error: Optional[str] = None

    def load(self) -> List[Product]:
        self.loading = True
        try:
            self.products = list(self.fetch_all())
            self.error = None
        except Exception as e:
            logger.error("Initial listings fetch failed: %s", e)
            self.error = str(e)
        finally:
            self.loading = False

        return self.products

    refresh = load

    def apply(self, event: ChangeEvent):
        if event.event_type == "INSERT":
            self._insert(event.new or {})
        elif event.event_type == "UPDATE":
            self._update(event.new or {})
        elif event.event_type == "DELETE":
            old_id = (event.old or {}).get("id")
            self.products = [p for p in self.products if p.id != old_id]

    def _insert(self, row: dict):
        listing_id = row.get("id")
        if not listing_id:
            return

        product = self.fetch_one(listing_id)
        if product is None:
            return

        # double delivery or a race with the initial fetch
        if any(p.id == product.id for p in self.products):
            return

        self.products = [product] + self.products

    def _update(self, row: dict):
        merged = []

        for p in self.products:
            if p.id == row.get("id"):
                status = row.get("status", p.status)
                # seller details are assumed unchanged
                p = p.model_copy(update={
                    "title": row.get("title", p.title),
                    "description": row.get("description", p.description),
                    "price": float(row.get("price", p.price)),
                    "status": status,
                    "is_sold": status == ListingStatus.SOLD.value,
                    "images": row.get("images", p.images),
                })
            merged.append(p)

        self.products = merged

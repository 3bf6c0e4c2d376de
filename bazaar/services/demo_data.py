from datetime import datetime, timedelta, timezone

from bazaar.models.user import DEFAULT_AVATAR

DEMO_USER_ID = "u1"

MOCK_USER = {
    "id": DEMO_USER_ID,
    "name": "Aarav Sharma",
    "email": "aarav.sharma@iitd.ac.in",
    "hostel": "Girnar",
    "avatarUrl": DEFAULT_AVATAR,
    "phone": "+91 98765 43210",
    "year": "3rd Year",
    "bio": "Selling stuff before I graduate.",
    "role": "ADMIN",
    "isBanned": False,
    "deletionRequestedAt": None,
    "theme": "dark",
    "campusSlug": "iitd",
}


def mock_products():
    now = datetime.now(timezone.utc)

    def product(pid, slug, title, price, original_price, category, condition, description, days_ago):
        created = now - timedelta(days=days_ago)
        return {
            "id": pid,
            "slug": slug,
            "title": title,
            "price": price,
            "originalPrice": original_price,
            "description": description,
            "category": category,
            "condition": condition,
            "images": [f"https://picsum.photos/seed/{slug}/600/600"],
            "sellerId": DEMO_USER_ID,
            "sellerName": MOCK_USER["name"],
            "sellerHostel": MOCK_USER["hostel"],
            "sellerEmail": MOCK_USER["email"],
            "sellerPhone": MOCK_USER["phone"],
            "createdAt": created.isoformat(),
            "likes": 0,
            "isSold": False,
            "status": "ACTIVE",
            "type": "STANDARD",
            "expiresAt": (created + timedelta(days=30)).isoformat(),
            "campusId": "iitd",
        }

    return [
        product("p1", "hero-sprint-cycle-p1", "Hero Sprint Cycle", 2500, 6000, "Cycles", "Good",
                "Geared cycle, serviced last month. Minor scratches on the frame.", 1),
        product("p2", "hc-verma-physics-set-p2", "HC Verma Physics (Both Volumes)", 300, 900, "Books", "Like New",
                "No markings, perfect for JEE revision or first year physics.", 2),
        product("p3", "study-table-lamp-p3", "Study Table Lamp", 0, None, "Electronics", "Fair",
                "Free to a good home. LED lamp with adjustable neck.", 3),
        product("p4", "engineering-drawing-kit-p4", "Engineering Drawing Kit", 250, 700, "Stationery", "Good",
                "Mini drafter, set squares and a compass box.", 5),
    ]

from typing import List, Optional
from pydantic import BaseModel


class Campus(BaseModel):
    id: str
    slug: str
    name: str
    email_domains: List[str]
    hostels: List[str]
    primary_color: str


CAMPUSES: List[Campus] = [
    Campus(
        id="iitd",
        slug="iitd",
        name="IIT Delhi",
        email_domains=["@iitd.ac.in", "@iitd.df.in"],
        hostels=[
            "Aravali", "Girnar", "Jwalamukhi", "Karakoram", "Kumaon", "Nilgiri",
            "Shivalik", "Satpura", "Vindhyachal", "Zanskar", "Himadri", "Kailash",
        ],
        primary_color="#6366f1",
    ),
    Campus(
        id="iitk",
        slug="iitk",
        name="IIT Kanpur",
        email_domains=["@iitk.ac.in"],
        hostels=[f"Hall {n}" for n in range(1, 14)],
        primary_color="#0ea5e9",
    ),
    Campus(
        id="iitb",
        slug="iitb",
        name="IIT Bombay",
        email_domains=["@iitb.ac.in"],
        hostels=[f"Hostel {n}" for n in range(1, 19)],
        primary_color="#f97316",
    ),
]


def email_domain(email: str) -> Optional[str]:
    if not email or "@" not in email:
        return None

    return email.rsplit("@", 1)[1].strip().lower() or None


def campus_for_email(email: str) -> Optional[Campus]:
    domain = email_domain(email)
    if not domain:
        return None

    for campus in CAMPUSES:
        if any(d.lstrip("@") == domain for d in campus.email_domains):
            return campus

    return None


def get_campus(slug: Optional[str]) -> Optional[Campus]:
    for campus in CAMPUSES:
        if campus.slug == slug:
            return campus

    return None


def resolve_campus(campus_slug: Optional[str], campus_id: Optional[str], email: Optional[str]) -> Optional[Campus]:
    """
    Resolve a profile's campus by slug, then id, then email domain.
    """
    if campus_slug:
        match = get_campus(campus_slug)
        if match:
            return match

    if campus_id:
        match = next((c for c in CAMPUSES if c.id == campus_id), None)
        if match:
            return match

    if email:
        return campus_for_email(email)

    return None

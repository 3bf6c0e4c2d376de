import re
import uuid
import unicodedata

MAX_SLUG_BASE = 60


def slugify(text: str) -> str:
    text = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii")
    text = re.sub(r"[^a-zA-Z0-9]+", "-", text.lower()).strip("-")
    return text[:MAX_SLUG_BASE].rstrip("-")


def listing_slug(title: str) -> str:
    # short random suffix keeps slugs unique across identical titles
    base = slugify(title) or "item"
    return f"{base}-{uuid.uuid4().hex[:6]}"

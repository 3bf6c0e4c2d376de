import os
import io
import logging
import uuid
from datetime import datetime, timezone
from PIL import Image, UnidentifiedImageError
import boto3

from bazaar import config

logger = logging.getLogger(__name__)

FOLDER = "item-images"

_s3 = None


class InvalidImage(ValueError):
    pass


def get_s3_client():
    global _s3

    if _s3 is None:
        _s3 = boto3.client(
            service_name="s3",
            endpoint_url=f"https://{config.CLOUDFLARE_ACCOUNT_ID}.r2.cloudflarestorage.com",
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
            region_name="auto",
        )

    return _s3


def compress_image(data: bytes, max_width=1400, quality=80):
    try:
        img = Image.open(io.BytesIO(data))
        img = img.convert("RGB")
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImage("File is not a readable image") from e

    # Resize while keeping aspect ratio
    w, h = img.size
    if w > max_width:
        new_height = int(h * (max_width / w))
        img = img.resize((max_width, new_height), Image.LANCZOS)

    # Try WebP first
    buffer = io.BytesIO()

    try:
        img.save(buffer, format="WEBP", quality=quality, method=6)
        ext = "webp"
    except Exception as e:
        logger.warning("WebP failed, falling back to JPEG: %s", e)

        buffer = io.BytesIO()
        img.save(buffer, format="JPEG", quality=80, optimize=True)
        ext = "jpg"

    buffer.seek(0)
    return buffer, ext


def object_key(original_name: str, ext: str) -> str:
    base = os.path.splitext(os.path.basename(original_name or "image"))[0] or "image"
    ts = int(datetime.now(timezone.utc).timestamp())

    return f"{FOLDER}/{base}-{ts}-{uuid.uuid4().hex[:8]}.{ext}"


def upload_to_s3(buffer: io.BytesIO, key: str):
    content_type = "image/webp" if key.endswith(".webp") else "image/jpeg"
    get_s3_client().upload_fileobj(buffer, config.R2_BUCKET, key, ExtraArgs={"ContentType": content_type})

    return key


def public_url(key: str) -> str:
    return f"{config.STORAGE_PUBLIC_URL.rstrip('/')}/{key}"


LOCAL_URL_PREFIX = "/uploads/files/"


def save_local(buffer: io.BytesIO, key: str, directory: str) -> str:
    """Demo mode storage: write under the demo data directory."""
    path = os.path.join(directory, "uploads", os.path.basename(key))
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "wb") as f:
        f.write(buffer.getvalue())

    return LOCAL_URL_PREFIX + os.path.basename(key)


def delete_local(url: str, directory: str):
    path = os.path.join(directory, "uploads", os.path.basename(url[len(LOCAL_URL_PREFIX):]))

    try:
        os.remove(path)
    except FileNotFoundError:
        logger.debug("Local image %s already removed", path)


def delete_s3_object(key: str):
    try:
        get_s3_client().delete_object(Bucket=config.R2_BUCKET, Key=key)
    except Exception as e:
        logger.error("Error deleting S3 object %s: %s", key, e)


def key_from_public_url(url: str):
    prefix = config.STORAGE_PUBLIC_URL.rstrip("/") + "/"
    if config.STORAGE_PUBLIC_URL and url.startswith(prefix):
        return url[len(prefix):]

    return None


def delete_listing_images(images, local_dir=None):
    for url in images:
        if local_dir and url.startswith(LOCAL_URL_PREFIX):
            delete_local(url, local_dir)
            continue

        key = key_from_public_url(url)
        if key:
            delete_s3_object(key)

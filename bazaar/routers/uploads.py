import logging
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from bazaar import config
from bazaar.schemas import Profile
from bazaar.services.factory import get_store
from bazaar.services.store import MarketStore
from bazaar.utils.auth_helper import get_profile_required
from bazaar.utils.s3_service import InvalidImage, compress_image, object_key, public_url, save_local, upload_to_s3

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_UPLOAD_SIZE_MB = 5
MAX_UPLOAD_BYTES = MAX_UPLOAD_SIZE_MB * 1024 * 1024


@router.post("/images")
async def upload_image(
    image: UploadFile = File(...),
    store: MarketStore = Depends(get_store),
    profile: Profile = Depends(get_profile_required),
):
    # read image into memory and upload
    raw_bytes = await image.read()

    if not raw_bytes:
        raise HTTPException(status_code=400, detail="Empty file")

    if len(raw_bytes) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail=f"Image exceeds {MAX_UPLOAD_SIZE_MB}MB limit")

    try:
        buffer, ext = compress_image(raw_bytes)
    except InvalidImage as e:
        raise HTTPException(status_code=400, detail=str(e))

    key = object_key(image.filename, ext)

    if store.is_demo:
        url = save_local(buffer, key, config.get_demo_data_dir())
    else:
        try:
            upload_to_s3(buffer, key)
        except Exception as e:
            logger.error("Image upload failed for %s: %s", profile.id, e)
            raise HTTPException(status_code=502, detail="Failed to upload image")
        url = public_url(key)

    return {"url": url}

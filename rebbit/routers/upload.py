import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from rebbit.config import Settings, get_settings
from rebbit.errors import field_error
from rebbit.schemas import UploadResponse
from rebbit.services import upload_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/upload", tags=["upload"])


@router.post("", response_model=UploadResponse)
async def upload_images(
    images: list[UploadFile] = File(...),
    settings: Settings = Depends(get_settings),
):
    if len(images) > settings.MAX_UPLOAD_FILES:
        raise field_error(f"At most {settings.MAX_UPLOAD_FILES} images per upload")
    try:
        names = await upload_service.save_uploads(settings.UPLOAD_DIR, images)
    except OSError:
        logger.exception("Could not store uploaded images")
        raise HTTPException(status_code=500, detail="Error while uploading images")
    return {"fileNames": names}

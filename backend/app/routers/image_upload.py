from fastapi import APIRouter, Depends, UploadFile, File
import logging

from app.auth.auth_handler import get_current_caller
from app.auth.policies import Caller
from app.errors import ValidationFailure
from app.models.upload import UploadedImage
from app.utils.storage import generate_object_key, get_object_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["Image Upload"])


@router.post("/", response_model=UploadedImage)
async def upload_image(
    file: UploadFile = File(...),
    caller: Caller = Depends(get_current_caller),
    store=Depends(get_object_store),
):
    content_type = file.content_type or ""
    if not content_type.startswith("image/"):
        raise ValidationFailure("Please choose a valid image file.")

    file_name = generate_object_key(file.filename or "")
    file_content = await file.read()

    url = store.put_bytes(key=file_name, data=file_content, content_type=content_type)
    logger.info("User %s uploaded %s (%d bytes)", caller.user_id, file_name, len(file_content))

    return {
        "filename": file_name,
        "url": url,
        "message": "Image uploaded successfully"
    }

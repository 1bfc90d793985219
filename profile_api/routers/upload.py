"""
Media upload endpoints (bearer token required):
  POST /api/upload/profile-image — multipart image → MinIO, returns url + key
  POST /api/upload/presigned-url — pre-signed PUT URL for a direct upload
"""
import logging
import os

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import JSONResponse

from profile_api.clients.media_client import MediaStore
from profile_api.config import settings
from profile_api.dependencies import get_current_user, get_media_store
from profile_api.errors import ValidationError
from profile_api.models import User
from profile_api.schemas import PresignRequest, PresignResponse, UploadResponse

logger = logging.getLogger(__name__)
router = APIRouter()

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}


def _check_image(filename: str, content_type: str) -> None:
    if not (content_type or "").startswith("image/"):
        raise ValidationError("Only image files are allowed")
    if os.path.splitext(filename or "")[1].lower() not in ALLOWED_EXTENSIONS:
        raise ValidationError("Only JPG, JPEG, PNG, GIF, and WebP files are allowed")


@router.post("/profile-image", response_model=UploadResponse)
async def upload_profile_image(
    image: UploadFile = File(...),
    user: User = Depends(get_current_user),
    media: MediaStore = Depends(get_media_store),
):
    _check_image(image.filename, image.content_type)

    data = await image.read(settings.media_max_upload_bytes + 1)
    if len(data) > settings.media_max_upload_bytes:
        limit_mb = settings.media_max_upload_bytes // (1024 * 1024)
        return JSONResponse(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            content={
                "error": "Payload Too Large",
                "message": f"File size too large. Maximum size is {limit_mb}MB",
            },
        )

    url, key = media.upload(data, image.filename, image.content_type, user.id)
    logger.info("User %s uploaded profile image %s", user.id, key)
    return UploadResponse(message="Image uploaded successfully", url=url, key=key)


@router.post("/presigned-url", response_model=PresignResponse)
async def presigned_url(
    body: PresignRequest,
    user: User = Depends(get_current_user),
    media: MediaStore = Depends(get_media_store),
):
    if not body.file_type.startswith("image/"):
        raise ValidationError("Only image files are allowed")

    upload_url, key, public_url = media.presigned_upload(body.file_name, body.file_type, user.id)
    return PresignResponse(
        message="Presigned URL generated successfully",
        upload_url=upload_url,
        key=key,
        public_url=public_url,
    )

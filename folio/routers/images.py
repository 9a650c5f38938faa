import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile

from folio.exceptions import InvalidImageError
from folio.routers.errors import http_error
from folio.security import get_current_user, get_settings
from folio.services.auth_service import AuthUser
from folio.services.image_service import (
    get_content_type_from_filename,
    get_optimized_image_url,
    upload_image,
    validate_image_file,
)
from folio.settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin")


def _check_upload(content_type: str, size: int, current_settings: Settings) -> None:
    error = validate_image_file(
        content_type,
        size,
        max_size_mb=current_settings.MAX_UPLOAD_MB,
        current_settings=current_settings,
    )
    if error:
        raise InvalidImageError(error)


@router.post("/images", status_code=201)
def upload(
    file: UploadFile = File(...),
    preview_width: int = Query(800, ge=16, le=4000),
    user: AuthUser = Depends(get_current_user),
    current_settings: Settings = Depends(get_settings),
):
    """
    Upload an image for a post body or cover and return its URL
    """
    filename = file.filename or "upload"
    content_type = file.content_type or ""
    if not content_type or content_type == "application/octet-stream":
        content_type = get_content_type_from_filename(filename)
    max_bytes = current_settings.MAX_UPLOAD_MB * 1024 * 1024

    try:
        # reject by the declared size before buffering, then never read past the limit
        _check_upload(content_type, file.size or 0, current_settings)
        data = file.file.read(max_bytes + 1)
        _check_upload(content_type, len(data), current_settings)
        url = upload_image(
            data, filename, content_type, current_settings=current_settings
        )
    except HTTPException:
        raise
    except Exception as e:
        raise http_error(e, "upload image")

    logger.info(f"{user.uid} uploaded {filename} ({len(data)} bytes)")
    return {"url": url, "previewUrl": get_optimized_image_url(url, preview_width)}

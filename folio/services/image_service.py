import base64
import hashlib
import logging
import re
import time
from typing import Optional
from urllib.parse import urlparse

import httpx

from folio.exceptions import ImageUploadError, InvalidImageError
from folio.settings import Settings, settings

logger = logging.getLogger(__name__)

# Largest file embedded as a data URL when the CDN is unavailable
MAX_FALLBACK_SIZE = 200 * 1024
UPLOAD_TIMEOUT_SECONDS = 30.0

_VERSION_SEGMENT = re.compile(r"^v\d+$")


def is_cdn_configured(current_settings: Optional[Settings] = None) -> bool:
    return (current_settings or settings).cdn_configured


def get_content_type_from_filename(filename: str) -> str:
    """
    Determine content type from file extension
    """
    filename = filename.lower()
    if filename.endswith((".jpg", ".jpeg")):
        return "image/jpeg"
    elif filename.endswith(".png"):
        return "image/png"
    elif filename.endswith(".gif"):
        return "image/gif"
    elif filename.endswith(".svg"):
        return "image/svg+xml"
    elif filename.endswith(".webp"):
        return "image/webp"
    else:
        return "application/octet-stream"


def _check_file(content_type: str, size: int, max_size_mb: int) -> Optional[str]:
    if not (content_type or "").startswith("image/"):
        return "Please select an image file"
    if size > max_size_mb * 1024 * 1024:
        return f"Image size must be less than {max_size_mb}MB"
    return None


def validate_image_file(
    content_type: str,
    size: int,
    max_size_mb: int = 10,
    current_settings: Optional[Settings] = None,
) -> Optional[str]:
    """Return a user-facing error message, or None when the file is acceptable."""
    error = _check_file(content_type, size, max_size_mb)
    if error:
        return error
    if not is_cdn_configured(current_settings) and size > MAX_FALLBACK_SIZE:
        return (
            f"Image too large for fallback mode ({size / 1024:.1f}KB). "
            "Configure Cloudinary or use images < 200KB"
        )
    return None


def to_data_url(data: bytes, content_type: str) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


def upload_image(
    data: bytes,
    filename: str,
    content_type: str,
    *,
    current_settings: Optional[Settings] = None,
    client: Optional[httpx.Client] = None,
) -> str:
    """
    Upload an image to Cloudinary and return its secure URL.

    Without a configured CDN, or when the upload fails, files up to 200KB are
    returned as base64 data URLs instead. That path is for development only:
    data URLs bloat the post document and skip CDN caching.
    """
    current_settings = current_settings or settings
    error = _check_file(content_type, len(data), current_settings.MAX_UPLOAD_MB)
    if error:
        raise InvalidImageError(error)

    if not current_settings.cdn_configured:
        logger.warning(
            "Cloudinary not configured. Using fallback data URL. "
            "Set CLOUDINARY_CLOUD_NAME and CLOUDINARY_UPLOAD_PRESET; "
            "this fallback is only suitable for development with images under 200KB."
        )
        if len(data) <= MAX_FALLBACK_SIZE:
            return to_data_url(data, content_type)
        raise ImageUploadError(
            f"Image too large for fallback ({len(data) / 1024:.1f}KB). "
            "Please configure Cloudinary or use images smaller than 200KB."
        )

    url = (
        f"{current_settings.CLOUDINARY_API_URL}/"
        f"{current_settings.CLOUDINARY_CLOUD_NAME}/image/upload"
    )
    owns_client = client is None
    client = client or httpx.Client(timeout=UPLOAD_TIMEOUT_SECONDS)
    try:
        response = client.post(
            url,
            data={"upload_preset": current_settings.CLOUDINARY_UPLOAD_PRESET},
            files={"file": (filename, data, content_type)},
        )
        if response.is_error:
            raise ImageUploadError(_error_message(response))
        secure_url = response.json().get("secure_url")
        if not secure_url:
            raise ImageUploadError("Upload response did not include a URL")
        logger.info(f"Uploaded {filename} to {secure_url}")
        return secure_url
    except (httpx.HTTPError, ImageUploadError, ValueError) as e:
        logger.error(f"Cloudinary upload error for {filename}: {e}")
        if len(data) <= MAX_FALLBACK_SIZE:
            logger.warning("Falling back to data URL due to upload error")
            return to_data_url(data, content_type)
        raise ImageUploadError(f"Failed to upload image: {e}") from e
    finally:
        if owns_client:
            client.close()


def _error_message(response: httpx.Response) -> str:
    try:
        message = response.json().get("error", {}).get("message")
    except ValueError:
        message = None
    return message or f"Upload failed: {response.reason_phrase}"


def get_optimized_image_url(url: str, width: int, height: Optional[int] = None) -> str:
    """Insert resize/quality/format tokens after /upload/ in a Cloudinary URL."""
    if "cloudinary.com" not in url:
        return url

    parsed = urlparse(url)
    path_parts = parsed.path.split("/upload/")
    if len(path_parts) != 2:
        return url

    transforms = [f"w_{width}", "c_limit", "q_auto", "f_auto"]
    if height:
        transforms.append(f"h_{height}")
    return (
        f"{parsed.scheme}://{parsed.netloc}{path_parts[0]}/upload/"
        f"{','.join(transforms)}/{path_parts[1]}"
    )


def extract_public_id(url: str) -> Optional[str]:
    if "cloudinary.com" not in (url or ""):
        return None
    path_parts = urlparse(url).path.split("/upload/")
    if len(path_parts) != 2:
        return None
    segments = [segment for segment in path_parts[1].split("/") if segment]
    if segments and _VERSION_SEGMENT.match(segments[0]):
        segments = segments[1:]
    if not segments:
        return None
    public_id = "/".join(segments)
    return public_id.rsplit(".", 1)[0] if "." in segments[-1] else public_id


def delete_image(
    url: str,
    *,
    current_settings: Optional[Settings] = None,
    client: Optional[httpx.Client] = None,
) -> bool:
    """
    Best-effort removal of a Cloudinary asset. Needs CLOUDINARY_API_KEY and
    CLOUDINARY_API_SECRET; never raises.
    """
    current_settings = current_settings or settings
    public_id = extract_public_id(url)
    if not public_id:
        return False
    if not (current_settings.CLOUDINARY_API_KEY and current_settings.CLOUDINARY_API_SECRET):
        logger.info(f"Skipping cleanup of {public_id}: Cloudinary API credentials not set")
        return False

    timestamp = str(int(time.time()))
    to_sign = f"public_id={public_id}&timestamp={timestamp}{current_settings.CLOUDINARY_API_SECRET}"
    payload = {
        "public_id": public_id,
        "timestamp": timestamp,
        "api_key": current_settings.CLOUDINARY_API_KEY,
        "signature": hashlib.sha1(to_sign.encode("utf-8")).hexdigest(),
    }
    destroy_url = (
        f"{current_settings.CLOUDINARY_API_URL}/"
        f"{current_settings.CLOUDINARY_CLOUD_NAME}/image/destroy"
    )

    owns_client = client is None
    client = client or httpx.Client(timeout=UPLOAD_TIMEOUT_SECONDS)
    try:
        response = client.post(destroy_url, data=payload)
        response.raise_for_status()
        deleted = response.json().get("result") == "ok"
        if not deleted:
            logger.warning(f"Cloudinary did not delete {public_id}: {response.text}")
        return deleted
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Failed to delete image {public_id}: {e}")
        return False
    finally:
        if owns_client:
            client.close()

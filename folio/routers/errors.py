import logging

from fastapi import HTTPException

from folio.exceptions import (
    AuthError,
    AuthNotConfiguredError,
    DatabaseNotInitializedError,
    ImageUploadError,
    InvalidImageError,
    PostNotFoundError,
    PostValidationError,
    SlugConflictError,
)

logger = logging.getLogger(__name__)


def http_error(e: Exception, action: str) -> HTTPException:
    """Translate a service error into the HTTPException a route should raise."""
    if isinstance(e, PostNotFoundError):
        return HTTPException(status_code=404, detail="Post not found")
    if isinstance(e, SlugConflictError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, PostValidationError):
        return HTTPException(
            status_code=422, detail={"message": str(e), "errors": e.errors}
        )
    if isinstance(e, InvalidImageError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, AuthError):
        return HTTPException(status_code=401, detail=e.kind.message)
    if isinstance(e, (DatabaseNotInitializedError, AuthNotConfiguredError)):
        logger.error(f"Service unavailable while trying to {action}: {e}")
        return HTTPException(status_code=503, detail="Service is not configured")
    if isinstance(e, ImageUploadError):
        logger.error(f"Image upload failed: {e}")
        return HTTPException(status_code=502, detail=str(e))

    logger.error(f"Unexpected error trying to {action}: {e}")
    return HTTPException(status_code=500, detail=f"Failed to {action}")

import logging
from typing import Iterator

from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_503_SERVICE_UNAVAILABLE

from folio.exceptions import AuthError, AuthNotConfiguredError
from folio.services.auth_service import AuthUser, IdentityClient
from folio.settings import Settings, settings

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings() -> Settings:
    """Small wrapper to allow dependency overrides in tests."""
    return settings


def get_identity_client(
    current_settings: Settings = Depends(get_settings),
) -> Iterator[IdentityClient]:
    client = IdentityClient(current_settings)
    try:
        yield client
    finally:
        client.close()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(bearer_scheme),
    identity: IdentityClient = Depends(get_identity_client),
) -> AuthUser:
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return identity.verify_id_token(credentials.credentials)
    except AuthNotConfiguredError as e:
        logger.error(str(e))
        raise HTTPException(
            status_code=HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication is not available",
        )
    except AuthError as e:
        raise HTTPException(
            status_code=HTTP_401_UNAUTHORIZED,
            detail=e.kind.message,
            headers={"WWW-Authenticate": "Bearer"},
        )

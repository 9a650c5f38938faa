import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from folio.routers.errors import http_error
from folio.security import get_current_user, get_identity_client
from folio.services.auth_service import AuthSession, AuthUser, IdentityClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth")


class LoginRequest(BaseModel):
    email: str
    password: str


@router.post("/login", response_model=AuthSession)
def login(
    body: LoginRequest,
    identity: IdentityClient = Depends(get_identity_client),
):
    """Exchange email and password for an ID token to send as a bearer token."""
    try:
        return identity.sign_in(body.email, body.password)
    except HTTPException:
        raise
    except Exception as e:
        raise http_error(e, "sign in")


@router.post("/logout")
def logout(user: AuthUser = Depends(get_current_user)):
    # ID tokens are stateless; the client drops its copy.
    logger.info(f"{user.email or user.uid} signed out")
    return {"message": "Signed out"}


@router.get("/me", response_model=AuthUser)
def me(user: AuthUser = Depends(get_current_user)):
    return user

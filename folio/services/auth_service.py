import logging
import uuid
from typing import Callable, List, Optional, Tuple

import httpx
from pydantic import BaseModel

from folio.exceptions import AuthError, AuthErrorKind, AuthNotConfiguredError
from folio.settings import Settings, settings

logger = logging.getLogger(__name__)

AUTH_TIMEOUT_SECONDS = 10.0

# Identity Toolkit error codes; the message may carry a " : detail" suffix
PROVIDER_ERROR_KINDS = {
    "INVALID_EMAIL": AuthErrorKind.INVALID_EMAIL,
    "USER_DISABLED": AuthErrorKind.USER_DISABLED,
    "EMAIL_NOT_FOUND": AuthErrorKind.USER_NOT_FOUND,
    "INVALID_PASSWORD": AuthErrorKind.WRONG_PASSWORD,
    "INVALID_LOGIN_CREDENTIALS": AuthErrorKind.INVALID_CREDENTIAL,
    "TOO_MANY_ATTEMPTS_TRY_LATER": AuthErrorKind.TOO_MANY_ATTEMPTS,
    "INVALID_ID_TOKEN": AuthErrorKind.INVALID_TOKEN,
    "TOKEN_EXPIRED": AuthErrorKind.INVALID_TOKEN,
}


class AuthUser(BaseModel):
    uid: str
    email: Optional[str] = None
    displayName: Optional[str] = None


class AuthSession(BaseModel):
    user: AuthUser
    idToken: str
    refreshToken: str
    expiresIn: int = 3600


AuthListener = Callable[[Optional[AuthUser]], None]


def error_kind_for(code: Optional[str]) -> AuthErrorKind:
    if not code:
        return AuthErrorKind.UNKNOWN
    return PROVIDER_ERROR_KINDS.get(code.split(":", 1)[0].strip(), AuthErrorKind.UNKNOWN)


class AuthState:
    """
    Observable holder of the signed-in user.

    subscribe() calls back immediately with the current user, then on every
    change, and returns an unsubscribe function that is safe to call twice.
    """

    def __init__(self):
        self._user: Optional[AuthUser] = None
        self._listeners: List[Tuple[str, AuthListener]] = []

    @property
    def current_user(self) -> Optional[AuthUser]:
        return self._user

    def subscribe(self, callback: AuthListener) -> Callable[[], None]:
        token = uuid.uuid4().hex
        self._listeners.append((token, callback))
        callback(self._user)

        def unsubscribe() -> None:
            self._listeners = [entry for entry in self._listeners if entry[0] != token]

        return unsubscribe

    def set_user(self, user: Optional[AuthUser]) -> None:
        if user == self._user:
            return
        self._user = user
        for _token, listener in list(self._listeners):
            try:
                listener(user)
            except Exception as e:
                logger.error(f"Auth state listener failed: {e}")


class IdentityClient:
    """Email/password sign-in against the Identity Toolkit REST API."""

    def __init__(
        self,
        current_settings: Optional[Settings] = None,
        client: Optional[httpx.Client] = None,
        state: Optional[AuthState] = None,
    ):
        self.settings = current_settings or settings
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=AUTH_TIMEOUT_SECONDS)
        self.state = state or AuthState()
        self.session: Optional[AuthSession] = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    @property
    def current_user(self) -> Optional[AuthUser]:
        return self.state.current_user

    @property
    def is_authenticated(self) -> bool:
        return self.current_user is not None

    @property
    def id_token(self) -> Optional[str]:
        return self.session.idToken if self.session else None

    def on_auth_state_change(self, callback: AuthListener) -> Callable[[], None]:
        return self.state.subscribe(callback)

    def sign_in(self, email: str, password: str) -> AuthSession:
        data = self._call(
            "accounts:signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        self.session = AuthSession(
            user=AuthUser(
                uid=data["localId"],
                email=data.get("email"),
                displayName=data.get("displayName") or None,
            ),
            idToken=data["idToken"],
            refreshToken=data.get("refreshToken", ""),
            expiresIn=int(data.get("expiresIn", 3600)),
        )
        logger.info(f"Signed in {self.session.user.email}")
        self.state.set_user(self.session.user)
        return self.session

    def sign_out(self) -> None:
        if self.session:
            logger.info(f"Signed out {self.session.user.email}")
        self.session = None
        self.state.set_user(None)

    def verify_id_token(self, id_token: str) -> AuthUser:
        try:
            data = self._call("accounts:lookup", {"idToken": id_token})
        except AuthError as e:
            # transport failures and disabled accounts keep their own kind
            if isinstance(e.__cause__, httpx.HTTPError) or e.kind == AuthErrorKind.USER_DISABLED:
                raise
            raise AuthError(AuthErrorKind.INVALID_TOKEN) from e

        users = data.get("users") or []
        if not users:
            raise AuthError(AuthErrorKind.INVALID_TOKEN)
        user = users[0]
        if user.get("disabled"):
            raise AuthError(AuthErrorKind.USER_DISABLED)
        return AuthUser(
            uid=user["localId"],
            email=user.get("email"),
            displayName=user.get("displayName") or None,
        )

    def _call(self, method: str, payload: dict) -> dict:
        if not self.settings.identity_configured:
            raise AuthNotConfiguredError()

        url = f"{self.settings.IDENTITY_TOOLKIT_URL}/{method}"
        try:
            response = self.client.post(
                url, params={"key": self.settings.FIREBASE_API_KEY}, json=payload
            )
        except httpx.HTTPError as e:
            logger.error(f"Identity provider request {method} failed: {e}")
            raise AuthError(AuthErrorKind.UNKNOWN) from e

        if response.is_error:
            code = _provider_code(response)
            logger.warning(f"Identity provider rejected {method}: {code}")
            raise AuthError(error_kind_for(code))
        return response.json()


def _provider_code(response: httpx.Response) -> Optional[str]:
    try:
        return response.json().get("error", {}).get("message")
    except ValueError:
        return None

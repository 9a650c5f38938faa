from enum import Enum
from typing import Dict, List, Optional


class FolioError(Exception):
    """Base class for errors raised by the folio services."""


class DatabaseNotInitializedError(FolioError):
    def __init__(self):
        super().__init__(
            "CouchDB database is not initialized. Check the COUCHDB_* settings."
        )


class PostNotFoundError(FolioError):
    def __init__(self, identifier: str):
        super().__init__(f"Post not found: {identifier}")
        self.identifier = identifier


class SlugConflictError(FolioError):
    def __init__(self, slug: str):
        super().__init__(f'A post with slug "{slug}" already exists')
        self.slug = slug


class PostValidationError(FolioError):
    def __init__(self, message: str, errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.errors = errors or [{"path": "", "message": message}]


class PostStoreError(FolioError):
    """Any failure raised by the document store, wrapped with context."""


class InvalidImageError(FolioError):
    pass


class ImageUploadError(FolioError):
    pass


class AuthErrorKind(str, Enum):
    INVALID_EMAIL = "invalid_email"
    USER_DISABLED = "user_disabled"
    USER_NOT_FOUND = "user_not_found"
    WRONG_PASSWORD = "wrong_password"
    INVALID_CREDENTIAL = "invalid_credential"
    TOO_MANY_ATTEMPTS = "too_many_attempts"
    INVALID_TOKEN = "invalid_token"
    UNKNOWN = "unknown"

    @property
    def message(self) -> str:
        return AUTH_ERROR_MESSAGES[self]


AUTH_ERROR_MESSAGES = {
    AuthErrorKind.INVALID_EMAIL: "Invalid email address",
    AuthErrorKind.USER_DISABLED: "This account has been disabled",
    AuthErrorKind.USER_NOT_FOUND: "No account found with this email",
    AuthErrorKind.WRONG_PASSWORD: "Incorrect password",
    AuthErrorKind.INVALID_CREDENTIAL: "Invalid email or password",
    AuthErrorKind.TOO_MANY_ATTEMPTS: "Too many failed attempts. Please try again later",
    AuthErrorKind.INVALID_TOKEN: "Session expired. Please sign in again",
    AuthErrorKind.UNKNOWN: "Failed to sign in",
}


class AuthError(FolioError):
    def __init__(self, kind: AuthErrorKind):
        super().__init__(kind.message)
        self.kind = kind


class AuthNotConfiguredError(FolioError):
    def __init__(self):
        super().__init__("Identity provider is not configured. Set FIREBASE_API_KEY.")

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_VALUES = {
    "YOUR_KEY",
    "YOUR_DOMAIN",
    "YOUR_PROJECT_ID",
    "YOUR_BUCKET",
    "YOUR_CLOUD_NAME",
    "YOUR_PRESET",
}


def choose_env_file() -> str:
    return ".env.local" if Path(".env.local").exists() else ".env"


def _is_set(value: str) -> bool:
    return bool(value) and value not in PLACEHOLDER_VALUES


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=choose_env_file(),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # tolerate unrelated env vars
    )

    # CouchDB
    COUCHDB_HOST: str = "localhost"
    COUCHDB_PORT: int = 5984
    COUCHDB_USERNAME: str = "admin"
    COUCHDB_PASSWORD: str = ""
    COUCHDB_DATABASE: str = "folio_posts"

    # Identity provider (Firebase Auth REST API)
    FIREBASE_API_KEY: str = ""
    IDENTITY_TOOLKIT_URL: str = "https://identitytoolkit.googleapis.com/v1"

    # Image CDN (Cloudinary)
    CLOUDINARY_CLOUD_NAME: str = ""
    CLOUDINARY_UPLOAD_PRESET: str = ""
    CLOUDINARY_API_KEY: str = ""
    CLOUDINARY_API_SECRET: str = ""
    CLOUDINARY_API_URL: str = "https://api.cloudinary.com/v1_1"
    MAX_UPLOAD_MB: int = 10

    # Blog
    BASE_SITE_URL: str = "http://localhost:3000"
    POSTS_PAGE_SIZE: int = 10
    ADMIN_PAGE_SIZE: int = 50

    # Logging
    LOG_LEVEL: str = "INFO"

    @property
    def couchdb_url(self) -> str:
        return f"http://{self.COUCHDB_USERNAME}:{self.COUCHDB_PASSWORD}@{self.COUCHDB_HOST}:{self.COUCHDB_PORT}"

    @property
    def couchdb_configured(self) -> bool:
        return _is_set(self.COUCHDB_HOST) and _is_set(self.COUCHDB_DATABASE)

    @property
    def identity_configured(self) -> bool:
        return _is_set(self.FIREBASE_API_KEY)

    @property
    def cdn_configured(self) -> bool:
        return _is_set(self.CLOUDINARY_CLOUD_NAME) and _is_set(
            self.CLOUDINARY_UPLOAD_PRESET
        )


# Global settings instance (evaluated at import, but reads env on construction)
settings = Settings()

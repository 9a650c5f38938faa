"""
Declarative constraints for post fields.

The request bodies of the admin API are these models, so FastAPI enforces them
on the way in; ``validate_post`` exposes the same checks to scripts and returns
field-level ``{path, message}`` pairs instead of raising.
"""

from typing import Any, Dict, Iterable, List, Optional, Type
from urllib.parse import urlparse

from pydantic import BaseModel, ValidationError, field_validator, model_validator

from folio.utils.slug import is_valid_slug

MAX_TAGS = 10
MAX_TAG_LENGTH = 50


def _bounded(value: str, label: str, max_length: int) -> str:
    if not value:
        raise ValueError(f"{label} is required")
    if len(value) > max_length:
        raise ValueError(f"{label} must be {max_length} characters or less")
    return value


class PostFields(BaseModel):
    title: str
    slug: str
    excerpt: str
    content: str
    tags: List[str] = []
    published: bool = False
    coverImageUrl: Optional[str] = None

    @field_validator("title")
    @classmethod
    def check_title(cls, value):
        if value is None:
            return value
        return _bounded(value.strip(), "Title", 200)

    @field_validator("slug")
    @classmethod
    def check_slug(cls, value):
        if value is None:
            return value
        value = _bounded(value.strip(), "Slug", 200)
        if not is_valid_slug(value):
            raise ValueError("Slug must be lowercase alphanumeric with hyphens")
        return value

    @field_validator("excerpt")
    @classmethod
    def check_excerpt(cls, value):
        if value is None:
            return value
        return _bounded(value.strip(), "Excerpt", 500)

    @field_validator("content")
    @classmethod
    def check_content(cls, value):
        if value is None:
            return value
        return _bounded(value, "Content", 50000)

    @field_validator("tags")
    @classmethod
    def check_tags(cls, value):
        if value is None:
            return value
        tags = [tag.strip() for tag in value]
        if len(tags) > MAX_TAGS:
            raise ValueError(f"Maximum {MAX_TAGS} tags allowed")
        for tag in tags:
            if not tag or len(tag) > MAX_TAG_LENGTH:
                raise ValueError(
                    f"Tags must be between 1 and {MAX_TAG_LENGTH} characters"
                )
        return tags

    @field_validator("coverImageUrl")
    @classmethod
    def check_cover_image(cls, value):
        if not value:
            return None
        if value.startswith("data:image/"):
            return value
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Cover image must be a valid URL")
        return value


class ClientPost(PostFields):
    """Post as submitted by the editor; server-managed fields are absent."""


class PostBase(PostFields):
    readingTime: Optional[int] = None

    @field_validator("readingTime")
    @classmethod
    def check_reading_time(cls, value):
        if value is not None and value < 1:
            raise ValueError("Reading time must be a positive integer")
        return value


class CreatePost(PostBase):
    authorId: str

    @field_validator("authorId")
    @classmethod
    def check_author(cls, value):
        if not value or not value.strip():
            raise ValueError("Author ID is required")
        return value


class UpdatePost(PostFields):
    title: Optional[str] = None
    slug: Optional[str] = None
    excerpt: Optional[str] = None
    content: Optional[str] = None
    tags: Optional[List[str]] = None
    published: Optional[bool] = None
    coverImageUrl: Optional[str] = None

    @model_validator(mode="after")
    def check_not_empty(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class ValidationResult(BaseModel):
    success: bool
    data: Optional[Any] = None
    errors: Optional[List[Dict[str, str]]] = None


def format_errors(errors: Iterable[dict]) -> List[Dict[str, str]]:
    """Flatten pydantic error dicts into ``{path, message}`` pairs."""
    formatted = []
    for error in errors:
        loc = list(error.get("loc", ()))
        if loc and loc[0] == "body":
            loc = loc[1:]
        message = str(error.get("msg", "Validation failed"))
        message = message.removeprefix("Value error, ")
        formatted.append(
            {"path": ".".join(str(part) for part in loc), "message": message}
        )
    return formatted


def validate_post(data: Any, schema: Type[BaseModel]) -> ValidationResult:
    try:
        return ValidationResult(success=True, data=schema.model_validate(data))
    except ValidationError as e:
        return ValidationResult(success=False, errors=format_errors(e.errors()))

import re
import unicodedata
from typing import Iterable

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_SEPARATORS = re.compile(r"[\s_]+")
_NON_WORD = re.compile(r"[^\w-]+", re.ASCII)
_REPEATED_HYPHENS = re.compile(r"-{2,}")
_COUNTER_SUFFIX = re.compile(r"^(.+)-(\d+)$")


def slugify(text: str) -> str:
    """Convert arbitrary text to a URL-safe slug.

    >>> slugify("Hello World!")
    'hello-world'
    >>> slugify("Special@#$Characters")
    'specialcharacters'
    """
    value = unicodedata.normalize("NFD", str(text).lower().strip())
    value = "".join(ch for ch in value if not unicodedata.combining(ch))
    value = _SEPARATORS.sub("-", value)
    value = _NON_WORD.sub("", value)
    value = _REPEATED_HYPHENS.sub("-", value)
    return value.strip("-")


def is_valid_slug(slug: str) -> bool:
    return bool(slug) and SLUG_PATTERN.match(slug) is not None


def ensure_unique_slug(base_slug: str, existing_slugs: Iterable[str]) -> str:
    """Append -1, -2, ... to base_slug until it is not in existing_slugs."""
    existing = set(existing_slugs)
    if base_slug not in existing:
        return base_slug

    counter = 1
    candidate = f"{base_slug}-{counter}"
    while candidate in existing:
        counter += 1
        candidate = f"{base_slug}-{counter}"
    return candidate


def generate_slug(title: str, max_length: int = 100) -> str:
    """Slugify a title, truncating at the last hyphen before max_length."""
    slug = slugify(title)
    if len(slug) <= max_length:
        return slug

    truncated = slug[:max_length]
    if slug[max_length] == "-":
        return truncated
    last_hyphen = truncated.rfind("-")
    return truncated[:last_hyphen] if last_hyphen > 0 else truncated


def extract_base_slug(slug: str) -> str:
    match = _COUNTER_SUFFIX.match(slug)
    return match.group(1) if match else slug

import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List, Set

import frontmatter
import yaml
from pydantic import BaseModel, Field, ValidationError

from folio.exceptions import FolioError, PostValidationError
from folio.schemas.validators import ClientPost, format_errors
from folio.services.posts_service import PostsService
from folio.utils.slug import ensure_unique_slug, generate_slug

logger = logging.getLogger(__name__)

EXCERPT_LENGTH = 200

_CODE_FENCE = re.compile(r"```.*?```", re.DOTALL)
_HEADING = re.compile(r"^#\s+(.+?)\s*#*\s*$", re.MULTILINE)
_IMAGE = re.compile(r"!\[[^\]]*\]\([^)]*\)")
_LINK = re.compile(r"\[([^\]]*)\]\([^)]*\)")
_EMPHASIS = re.compile(r"[*_`~]+")


class ImportReport(BaseModel):
    created: List[str] = Field(default_factory=list)
    skipped: Dict[str, str] = Field(default_factory=dict)


def normalize_tags(value) -> List[str]:
    """
    Accept tags written as a YAML list or a comma separated string.
    """
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    if isinstance(value, (list, tuple, set)):
        tags = [str(item).strip() for item in value if item]
        return list(dict.fromkeys(tag for tag in tags if tag))
    return [str(value)]


def derive_title(metadata: dict, content: str) -> str:
    if metadata.get("title"):
        return str(metadata["title"]).strip()
    match = _HEADING.search(content)
    return match.group(1).strip() if match else ""


def derive_excerpt(content: str, max_length: int = EXCERPT_LENGTH) -> str:
    """First prose paragraph with Markdown markup removed, cut at a word boundary."""
    for block in re.split(r"\n\s*\n", _CODE_FENCE.sub("", content)):
        block = block.strip()
        if not block or block.startswith(("#", ">", "|", "<")):
            continue
        text = _IMAGE.sub("", block)
        text = _LINK.sub(r"\1", text)
        text = _EMPHASIS.sub("", text)
        text = " ".join(text.split())
        if not text:
            continue
        if len(text) <= max_length:
            return text
        cut = text[:max_length].rsplit(" ", 1)[0]
        return f"{cut}..."
    return ""


def load_markdown_post(text: str, existing_slugs: Iterable[str] = ()) -> ClientPost:
    """Turn a Markdown file with YAML front matter into a validated post body."""
    parsed = frontmatter.loads(text)
    metadata = parsed.metadata or {}
    content = parsed.content.strip()

    title = derive_title(metadata, content)
    # an explicit slug is kept as written so a collision surfaces as a conflict
    slug = str(metadata.get("slug") or "")
    if not slug and title:
        slug = ensure_unique_slug(generate_slug(title), existing_slugs)

    published = metadata.get("published")
    if published is None:
        published = metadata.get("draft") is False

    data = {
        "title": title,
        "slug": slug,
        "excerpt": metadata.get("excerpt")
        or metadata.get("summary")
        or derive_excerpt(content),
        "content": content,
        "tags": normalize_tags(metadata.get("tags")),
        "published": bool(published),
        "coverImageUrl": metadata.get("coverImage")
        or metadata.get("coverImageUrl")
        or metadata.get("image"),
    }
    try:
        return ClientPost.model_validate(data)
    except ValidationError as e:
        errors = format_errors(e.errors())
        raise PostValidationError(
            f"Invalid post {title or '(untitled)'}: "
            + "; ".join(f"{err['path']}: {err['message']}" for err in errors),
            errors,
        ) from e


def collect_author_slugs(service: PostsService, author_id: str) -> Set[str]:
    slugs: Set[str] = set()
    cursor = None
    while True:
        page = service.list_all_my_posts(author_id, limit=100, cursor=cursor)
        slugs.update(post.slug for post in page.posts)
        if not page.hasMore:
            return slugs
        cursor = page.cursor


def import_markdown_files(
    service: PostsService, paths: Iterable[Path], author_id: str
) -> ImportReport:
    """
    Create one post per Markdown file. Files that cannot be read or decoded,
    carry malformed front matter, fail validation or collide with another
    author's slug are reported and skipped.
    """
    report = ImportReport()
    existing = collect_author_slugs(service, author_id)

    for path in sorted(paths):
        try:
            body = load_markdown_post(path.read_text(encoding="utf-8"), existing)
            post = service.create_post(body, author_id=author_id)
        except (FolioError, OSError, ValueError, yaml.YAMLError) as e:
            logger.warning(f"Skipping {path}: {e}")
            report.skipped[str(path)] = str(e)
            continue
        existing.add(post.slug)
        report.created.append(post.slug)
        logger.info(f"Imported {path} as {post.slug}")

    return report

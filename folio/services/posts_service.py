import base64
import binascii
import json
import logging
import uuid
from collections import Counter
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from folio.exceptions import (
    DatabaseNotInitializedError,
    FolioError,
    PostNotFoundError,
    PostStoreError,
    PostValidationError,
    SlugConflictError,
)
from folio.repos.posts_repo import POST_TYPE, CouchPostsRepo, Keyset
from folio.schemas.blog import AdjacentPosts, ListPostsResult, Post, TagCount
from folio.utils.slug import is_valid_slug
from folio.utils.time import calculate_reading_time, to_storage, utcnow

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("title", "slug", "excerpt", "content")
UPDATABLE_FIELDS = REQUIRED_FIELDS + ("tags", "coverImageUrl", "published")
NULLABLE_FIELDS = ("coverImageUrl",)


class PostsService:
    """
    Post operations on top of CouchPostsRepo.

    Every operation raises DatabaseNotInitializedError when the service was
    built without a database, and wraps store failures in PostStoreError.
    """

    def __init__(self, repo: Optional[CouchPostsRepo]):
        self.repo = repo

    def list_published_posts(
        self,
        tag: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 10,
        cursor: Optional[str] = None,
    ) -> ListPostsResult:
        """
        Newest published posts first.

        ``search`` is applied to the fetched page only (case-insensitive match
        on title or excerpt). ``hasMore`` and ``cursor`` describe the
        unfiltered page, so a searched page can hold fewer than ``limit``
        posts while later pages still contain matches.
        """
        repo = self._ensure_db()
        _check_limit(limit)
        after = decode_cursor(cursor) if cursor else None

        with _store_errors("list published posts"):
            docs = repo.list_published(tag=tag, after=after, limit=limit + 1)

        result = _paginate(docs, limit, sort_field="createdAt")
        if search:
            needle = search.lower()
            result.posts = [
                post
                for post in result.posts
                if needle in post.title.lower() or needle in post.excerpt.lower()
            ]
        return result

    def list_all_my_posts(
        self, author_id: str, limit: int = 50, cursor: Optional[str] = None
    ) -> ListPostsResult:
        """Every post owned by author_id, drafts included, most recently updated first."""
        repo = self._ensure_db()
        if not author_id:
            raise PostValidationError(
                "User ID is required", [{"path": "authorId", "message": "User ID is required"}]
            )
        _check_limit(limit)
        after = decode_cursor(cursor) if cursor else None

        with _store_errors("list user posts"):
            docs = repo.list_by_author(author_id, after=after, limit=limit + 1)

        return _paginate(docs, limit, sort_field="updatedAt")

    def get_post_by_slug(self, slug: str, published_only: bool = True) -> Optional[Post]:
        repo = self._ensure_db()
        if not slug or not isinstance(slug, str):
            raise PostValidationError("Invalid slug provided")

        with _store_errors("get post by slug"):
            doc = repo.find_by_slug(slug, published_only=published_only)
        return doc_to_post(doc) if doc else None

    def get_post_by_id(self, post_id: str) -> Optional[Post]:
        repo = self._ensure_db()
        if not post_id:
            raise PostValidationError("Post ID is required")

        with _store_errors("get post"):
            doc = repo.get(post_id)
        return doc_to_post(doc) if doc else None

    def get_adjacent_posts(self, slug: str, published_only: bool = True) -> AdjacentPosts:
        """
        Previous is the next-older published post, next the next-newer one.

        The anchor must itself be published unless published_only is False, so
        the public route does not reveal which draft slugs exist.
        """
        repo = self._ensure_db()

        with _store_errors("get adjacent posts"):
            current = repo.find_by_slug(slug, published_only=published_only)
            if not current:
                raise PostNotFoundError(slug)
            previous = repo.find_neighbor(current["createdAt"], newer=False)
            following = repo.find_neighbor(current["createdAt"], newer=True)

        return AdjacentPosts(
            previous=doc_to_post(previous) if previous else None,
            next=doc_to_post(following) if following else None,
        )

    def list_tags(self) -> List[TagCount]:
        repo = self._ensure_db()

        counts: Counter = Counter()
        with _store_errors("list tags"):
            for tags in repo.iter_published_tags():
                counts.update(set(tags))

        return [
            TagCount(tag=tag, count=count)
            for tag, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        ]

    def create_post(self, data: Any, author_id: str) -> Post:
        repo = self._ensure_db()
        if not author_id:
            raise PostValidationError(
                "User ID is required to create a post",
                [{"path": "authorId", "message": "Author ID is required"}],
            )

        fields = _as_dict(data)
        missing = [name for name in REQUIRED_FIELDS if not fields.get(name)]
        if missing:
            raise PostValidationError(
                "Missing required fields: title, slug, excerpt, and content are required",
                [{"path": name, "message": f"{name.capitalize()} is required"} for name in missing],
            )
        slug = fields["slug"]
        _check_slug(slug)

        post_id = uuid.uuid4().hex
        with _store_errors("create post"):
            if repo.find_by_slug(slug):
                raise SlugConflictError(slug)
            if not repo.claim_slug(slug, post_id):
                raise SlugConflictError(slug)

        now = to_storage(utcnow())
        doc = {
            "_id": post_id,
            "type": POST_TYPE,
            "title": fields["title"],
            "slug": slug,
            "excerpt": fields["excerpt"],
            "content": fields["content"],
            "tags": list(fields.get("tags") or []),
            "coverImageUrl": fields.get("coverImageUrl") or None,
            "published": bool(fields.get("published", False)),
            "authorId": author_id,
            "readingTime": calculate_reading_time(fields["content"]),
            "createdAt": now,
            "updatedAt": now,
        }

        try:
            saved = repo.save(doc)
        except Exception as e:
            logger.error(f"Error creating post {slug}: {e}")
            self._release_slug_quietly(slug, post_id)
            raise PostStoreError(f"Failed to create post: {e}") from e

        logger.info(f"Created post {post_id} ({slug}) for {author_id}")
        return doc_to_post(saved)

    def update_post(self, post_id: str, data: Any) -> Post:
        repo = self._ensure_db()
        if not post_id:
            raise PostValidationError("Post ID is required")

        changes = {
            name: value
            for name, value in _as_dict(data, exclude_unset=True).items()
            if name in UPDATABLE_FIELDS and (value is not None or name in NULLABLE_FIELDS)
        }
        if not changes:
            raise PostValidationError("At least one field must be provided for update")
        empty = [name for name in REQUIRED_FIELDS if name in changes and not changes[name]]
        if empty:
            raise PostValidationError(
                f"Fields cannot be empty: {', '.join(empty)}",
                [{"path": name, "message": f"{name.capitalize()} is required"} for name in empty],
            )
        if "slug" in changes:
            _check_slug(changes["slug"])

        with _store_errors("update post"):
            doc = repo.get(post_id)
        if doc is None:
            raise PostNotFoundError(post_id)

        old_slug = doc.get("slug")
        new_slug = changes.get("slug")
        slug_changed = new_slug is not None and new_slug != old_slug
        if slug_changed:
            with _store_errors("update post"):
                existing = repo.find_by_slug(new_slug)
                if existing and existing["_id"] != post_id:
                    raise SlugConflictError(new_slug)
                if not repo.claim_slug(new_slug, post_id):
                    raise SlugConflictError(new_slug)

        updated = {**doc, **changes, "updatedAt": to_storage(utcnow())}
        if "tags" in changes:
            updated["tags"] = list(changes["tags"])
        if "content" in changes:
            updated["readingTime"] = calculate_reading_time(changes["content"])

        try:
            saved = repo.save(updated)
        except Exception as e:
            logger.error(f"Error updating post {post_id}: {e}")
            if slug_changed:
                self._release_slug_quietly(new_slug, post_id)
            raise PostStoreError(f"Failed to update post: {e}") from e

        if slug_changed:
            self._release_slug_quietly(old_slug, post_id)
        logger.info(f"Updated post {post_id}: {', '.join(sorted(changes))}")
        return doc_to_post(saved)

    def delete_post(self, post_id: str) -> Post:
        """
        Remove a post and return it. Cleaning up its cover image is left to
        the caller.
        """
        repo = self._ensure_db()
        if not post_id:
            raise PostValidationError("Post ID is required")

        with _store_errors("delete post"):
            doc = repo.get(post_id)
            if doc is None:
                raise PostNotFoundError(post_id)
            repo.delete(post_id)

        self._release_slug_quietly(doc.get("slug"), post_id)
        logger.info(f"Deleted post {post_id}")
        return doc_to_post(doc)

    def _ensure_db(self) -> CouchPostsRepo:
        if self.repo is None:
            raise DatabaseNotInitializedError()
        return self.repo

    def _release_slug_quietly(self, slug: Optional[str], post_id: str) -> None:
        if not slug:
            return
        try:
            self.repo.release_slug(slug, post_id)
        except Exception as e:
            logger.warning(f"Failed to release slug {slug} for post {post_id}: {e}")


def doc_to_post(doc: dict) -> Post:
    return Post(
        id=doc["_id"],
        title=doc.get("title") or "",
        slug=doc.get("slug") or "",
        excerpt=doc.get("excerpt") or "",
        content=doc.get("content") or "",
        tags=doc.get("tags") or [],
        coverImageUrl=doc.get("coverImageUrl"),
        authorId=doc.get("authorId") or "",
        published=bool(doc.get("published", False)),
        readingTime=doc.get("readingTime"),
        createdAt=doc.get("createdAt"),
        updatedAt=doc.get("updatedAt"),
    )


def encode_cursor(sort_value: str, doc_id: str) -> str:
    raw = json.dumps([sort_value, doc_id]).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_cursor(cursor: str) -> Keyset:
    try:
        value, doc_id = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))
    except (binascii.Error, ValueError, TypeError, UnicodeError) as e:
        raise PostValidationError(
            "Invalid cursor", [{"path": "cursor", "message": "Invalid cursor"}]
        ) from e
    if not isinstance(value, str) or not isinstance(doc_id, str):
        raise PostValidationError(
            "Invalid cursor", [{"path": "cursor", "message": "Invalid cursor"}]
        )
    return value, doc_id


def _paginate(docs: List[dict], limit: int, sort_field: str) -> ListPostsResult:
    has_more = len(docs) > limit
    page = docs[:limit]
    cursor = encode_cursor(page[-1][sort_field], page[-1]["_id"]) if has_more else None
    return ListPostsResult(
        posts=[doc_to_post(doc) for doc in page], cursor=cursor, hasMore=has_more
    )


def _check_limit(limit: int) -> None:
    if limit < 1:
        raise PostValidationError(
            "Limit must be at least 1", [{"path": "limit", "message": "Limit must be at least 1"}]
        )


def _check_slug(slug: str) -> None:
    if not is_valid_slug(slug):
        raise PostValidationError(
            f"Invalid slug: {slug}",
            [{"path": "slug", "message": "Slug must be lowercase alphanumeric with hyphens"}],
        )


def _as_dict(data: Any, exclude_unset: bool = False) -> Dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump(exclude_unset=exclude_unset)
    return dict(data or {})


@contextmanager
def _store_errors(action: str):
    try:
        yield
    except FolioError:
        raise
    except Exception as e:
        logger.error(f"Error trying to {action}: {e}")
        raise PostStoreError(f"Failed to {action}: {e}") from e

import json
import logging
from typing import Iterator, List, Optional, Tuple

import pycouchdb

logger = logging.getLogger(__name__)

POST_TYPE = "post"
SLUG_TYPE = "slug"
JSON_HEADERS = {"Content-Type": "application/json"}

# (sort value, document id) of the last row of a page
Keyset = Tuple[str, str]

INDEXES = {
    "posts-published-created": ["type", "published", "createdAt", "_id"],
    "posts-author-updated": ["type", "authorId", "updatedAt", "_id"],
    "posts-slug": ["type", "slug"],
}


def slug_claim_id(slug: str) -> str:
    return f"{SLUG_TYPE}:{slug}"


class CouchPostsRepo:
    """Mango queries against the posts database."""

    def __init__(self, couch_db):
        self.db = couch_db

    def ensure_indexes(self) -> None:
        for name, fields in INDEXES.items():
            body = {"index": {"fields": fields}, "name": name, "type": "json"}
            self._post("_index", body)
            logger.debug(f"Ensured Mango index {name} on {fields}")

    def find(
        self,
        selector: dict,
        sort: Optional[List[dict]] = None,
        limit: Optional[int] = None,
        fields: Optional[List[str]] = None,
        bookmark: Optional[str] = None,
    ) -> Tuple[List[dict], Optional[str]]:
        query: dict = {"selector": selector}
        if sort:
            query["sort"] = sort
        if limit is not None:
            query["limit"] = limit
        if fields:
            query["fields"] = fields
        if bookmark:
            query["bookmark"] = bookmark
        result = self._post("_find", query)
        return result.get("docs", []), result.get("bookmark")

    def list_published(
        self, tag: Optional[str] = None, after: Optional[Keyset] = None, limit: int = 10
    ) -> List[dict]:
        selector = {
            "type": POST_TYPE,
            "published": True,
            "createdAt": {"$gt": None},
            "_id": {"$gt": None},
        }
        if tag:
            selector["tags"] = {"$elemMatch": {"$eq": tag}}
        if after:
            selector["$or"] = _before(after, "createdAt")
        docs, _ = self.find(
            selector,
            sort=_sort(["type", "published", "createdAt", "_id"], "desc"),
            limit=limit,
        )
        return docs

    def list_by_author(
        self, author_id: str, after: Optional[Keyset] = None, limit: int = 50
    ) -> List[dict]:
        selector = {
            "type": POST_TYPE,
            "authorId": author_id,
            "updatedAt": {"$gt": None},
            "_id": {"$gt": None},
        }
        if after:
            selector["$or"] = _before(after, "updatedAt")
        docs, _ = self.find(
            selector,
            sort=_sort(["type", "authorId", "updatedAt", "_id"], "desc"),
            limit=limit,
        )
        return docs

    def find_by_slug(self, slug: str, published_only: bool = False) -> Optional[dict]:
        selector = {"type": POST_TYPE, "slug": slug}
        if published_only:
            selector["published"] = True
        docs, _ = self.find(selector, limit=1)
        return docs[0] if docs else None

    def find_neighbor(self, created_at: str, newer: bool) -> Optional[dict]:
        """Closest published post created strictly before (or after) created_at."""
        direction = "asc" if newer else "desc"
        selector = {
            "type": POST_TYPE,
            "published": True,
            "createdAt": {"$gt" if newer else "$lt": created_at},
            "_id": {"$gt": None},
        }
        docs, _ = self.find(
            selector,
            sort=_sort(["type", "published", "createdAt", "_id"], direction),
            limit=1,
        )
        return docs[0] if docs else None

    def iter_published_tags(self, batch_size: int = 200) -> Iterator[List[str]]:
        bookmark = None
        while True:
            docs, bookmark = self.find(
                {"type": POST_TYPE, "published": True},
                fields=["tags"],
                limit=batch_size,
                bookmark=bookmark,
            )
            for doc in docs:
                yield doc.get("tags") or []
            if len(docs) < batch_size or not bookmark:
                return

    def get(self, doc_id: str) -> Optional[dict]:
        try:
            doc = self.db.get(doc_id)
        except pycouchdb.exceptions.NotFound:
            return None
        if doc.get("type") != POST_TYPE:
            return None
        return doc

    def save(self, doc: dict) -> dict:
        return self.db.save(doc)

    def delete(self, doc_id: str) -> None:
        self.db.delete(doc_id)

    def claim_slug(self, slug: str, post_id: str) -> bool:
        """
        Reserve slug for post_id. CouchDB rejects a second document with the
        same _id, so two writers racing for one slug cannot both win.
        """
        try:
            self.db.save({"_id": slug_claim_id(slug), "type": SLUG_TYPE, "postId": post_id})
            return True
        except pycouchdb.exceptions.Conflict:
            try:
                claim = self.db.get(slug_claim_id(slug))
            except pycouchdb.exceptions.NotFound:
                return False
            return claim.get("postId") == post_id

    def release_slug(self, slug: str, post_id: str) -> None:
        try:
            claim = self.db.get(slug_claim_id(slug))
        except pycouchdb.exceptions.NotFound:
            return
        if claim.get("postId") == post_id:
            self.db.delete(claim["_id"])

    def _post(self, path: str, body: dict) -> dict:
        _, result = self.db.resource.post(
            path, data=json.dumps(body), headers=JSON_HEADERS
        )
        return result or {}


def _sort(fields: List[str], direction: str) -> List[dict]:
    return [{field: direction} for field in fields]


def _before(after: Keyset, field: str) -> List[dict]:
    value, doc_id = after
    return [
        {field: {"$lt": value}},
        {field: value, "_id": {"$lt": doc_id}},
    ]

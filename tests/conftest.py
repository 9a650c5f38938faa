import copy
import json
import uuid

import httpx
import pycouchdb
import pytest

from folio.repos.posts_repo import CouchPostsRepo
from folio.services.auth_service import AuthUser
from folio.services.posts_service import PostsService
from folio.settings import Settings

MISSING = object()


def _collate(value):
    """Sort key approximating CouchDB collation: null < bool < number < string < array < object."""
    if value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, (int, float)):
        return (2, value)
    if isinstance(value, str):
        return (3, value)
    return (4 if isinstance(value, list) else 5, json.dumps(value, sort_keys=True))


def _match_condition(value, condition) -> bool:
    if isinstance(condition, dict) and condition and all(
        key.startswith("$") for key in condition
    ):
        for op, arg in condition.items():
            if value is MISSING:
                return False
            if op == "$eq" and _collate(value) != _collate(arg):
                return False
            if op == "$gt" and not _collate(value) > _collate(arg):
                return False
            if op == "$lt" and not _collate(value) < _collate(arg):
                return False
            if op == "$elemMatch" and not (
                isinstance(value, list)
                and any(_match_condition(item, arg) for item in value)
            ):
                return False
        return True
    return value is not MISSING and _collate(value) == _collate(condition)


def match_selector(doc: dict, selector: dict) -> bool:
    for key, condition in selector.items():
        if key == "$or":
            if not any(match_selector(doc, sub) for sub in condition):
                return False
        elif key == "$and":
            if not all(match_selector(doc, sub) for sub in condition):
                return False
        elif not _match_condition(doc.get(key, MISSING), condition):
            return False
    return True


class FakeResource:
    def __init__(self, db):
        self.db = db

    def post(self, path, data=None, headers=None):
        body = json.loads(data) if data else {}
        if self.db.track_calls:
            self.db.calls.append(path)
        if path == "_find":
            self.db.queries.append(body)
            return None, self.db.find(body)
        if path == "_index":
            self.db.indexes.append(body)
            return None, {"result": "created", "name": body.get("name")}
        raise pycouchdb.exceptions.NotFound(path)


class FakeCouchDB:
    """
    Minimal in-memory CouchDB stand-in that understands the Mango subset
    CouchPostsRepo issues. Set track_calls=True to record the order of calls;
    put method names in fail_on to make them raise.
    """

    def __init__(self, docs: dict | None = None, track_calls: bool = False):
        self.docs = {}
        self.track_calls = track_calls
        self.calls = []
        self.queries = []
        self.indexes = []
        self.fail_on = set()
        self.resource = FakeResource(self)
        for doc_id, doc in (docs or {}).items():
            self.docs[doc_id] = {"_id": doc_id, "_rev": "1-seed", **doc}

    def _record(self, name, arg=None):
        if name in self.fail_on:
            raise pycouchdb.exceptions.GenericError(f"{name} failed")
        if self.track_calls:
            self.calls.append(name if arg is None else f"{name}({arg})")

    def get(self, doc_id: str) -> dict:
        self._record("get", doc_id)
        if doc_id not in self.docs:
            raise pycouchdb.exceptions.NotFound(doc_id)
        return copy.deepcopy(self.docs[doc_id])

    def save(self, doc: dict) -> dict:
        self._record("save", doc.get("_id"))
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", uuid.uuid4().hex)
        stored = self.docs.get(doc["_id"])
        if stored is not None and stored.get("_rev") != doc.get("_rev"):
            raise pycouchdb.exceptions.Conflict("Document update conflict.")
        generation = int(stored["_rev"].split("-")[0]) + 1 if stored else 1
        doc["_rev"] = f"{generation}-{uuid.uuid4().hex[:8]}"
        self.docs[doc["_id"]] = doc
        return copy.deepcopy(doc)

    def delete(self, doc_or_id) -> None:
        doc_id = doc_or_id["_id"] if isinstance(doc_or_id, dict) else doc_or_id
        self._record("delete", doc_id)
        if doc_id not in self.docs:
            raise pycouchdb.exceptions.NotFound("Document not found")
        del self.docs[doc_id]

    def all(self, include_docs: bool = True):
        if include_docs:
            return [{"doc": copy.deepcopy(doc)} for doc in self.docs.values()]
        return [{"id": doc_id} for doc_id in self.docs]

    def find(self, query: dict) -> dict:
        self._record("find")
        selector = query.get("selector", {})
        rows = [doc for doc in self.docs.values() if match_selector(doc, selector)]
        for order in reversed(query.get("sort", [])):
            (field, direction), = order.items()
            rows.sort(
                key=lambda doc: _collate(doc.get(field)), reverse=direction == "desc"
            )
        offset = int(query.get("bookmark") or 0)
        limit = query.get("limit", 25)
        page = rows[offset : offset + limit]
        if query.get("fields"):
            page = [{k: doc[k] for k in query["fields"] if k in doc} for doc in page]
        return {
            "docs": copy.deepcopy(page),
            "bookmark": str(offset + len(page)),
        }


def make_post_doc(post_id: str, **overrides) -> dict:
    """A stored post document as CouchPostsRepo writes it."""
    doc = {
        "_id": post_id,
        "type": "post",
        "title": f"Post {post_id}",
        "slug": post_id,
        "excerpt": f"Excerpt for {post_id}",
        "content": "Some content",
        "tags": [],
        "coverImageUrl": None,
        "authorId": "author-1",
        "published": True,
        "readingTime": 1,
        "createdAt": "2024-01-01T00:00:00.000000+00:00",
        "updatedAt": "2024-01-01T00:00:00.000000+00:00",
    }
    doc.update(overrides)
    return doc


def seed_posts(db: FakeCouchDB, *docs: dict) -> FakeCouchDB:
    for doc in docs:
        db.docs[doc["_id"]] = {"_rev": "1-seed", **doc}
        if doc.get("type") == "post":
            claim_id = f"slug:{doc['slug']}"
            db.docs[claim_id] = {
                "_id": claim_id,
                "_rev": "1-seed",
                "type": "slug",
                "postId": doc["_id"],
            }
    return db


@pytest.fixture
def fake_db():
    return FakeCouchDB()


@pytest.fixture
def service(fake_db):
    return PostsService(CouchPostsRepo(fake_db))


@pytest.fixture
def author():
    return AuthUser(uid="author-1", email="author@example.com")


def make_settings(**overrides) -> Settings:
    values = {
        "FIREBASE_API_KEY": "test-key",
        "IDENTITY_TOOLKIT_URL": "https://identity.test/v1",
        "CLOUDINARY_CLOUD_NAME": "",
        "CLOUDINARY_UPLOAD_PRESET": "",
        "CLOUDINARY_API_URL": "https://cdn.test/v1_1",
    }
    values.update(overrides)
    return Settings(**values)


def mock_client(handler) -> httpx.Client:
    """httpx client whose requests are answered by handler(request)."""
    return httpx.Client(transport=httpx.MockTransport(handler))

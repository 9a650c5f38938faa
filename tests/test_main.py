import threading

from fastapi.testclient import TestClient

import folio.main as main_module
from folio import dependencies as deps
from folio.main import app
from folio.repos.posts_repo import INDEXES, CouchPostsRepo
from folio.security import get_current_user
from folio.services.auth_service import AuthUser
from tests.conftest import FakeCouchDB, make_post_doc, seed_posts


def test_root_endpoint_runs_lifespan(monkeypatch):
    prepared = []
    monkeypatch.setattr(
        main_module,
        "prepare_store",
        lambda: prepared.append(threading.current_thread()),
    )

    with TestClient(app) as client:
        loop_thread = client.portal.call(threading.current_thread)
        res = client.get("/")
        assert res.status_code == 200
        assert res.json() == {"message": "Folio API is running"}

    # store setup blocks on CouchDB, so it runs in a worker thread, not on the loop
    assert len(prepared) == 1
    assert prepared[0] is not loop_thread


def test_prepare_store_creates_indexes(monkeypatch):
    db = FakeCouchDB()
    monkeypatch.setattr(main_module, "get_couch", lambda: db)

    assert main_module.prepare_store() is True
    assert [index["name"] for index in db.indexes] == list(INDEXES)


def test_prepare_store_without_database(monkeypatch):
    monkeypatch.setattr(main_module, "get_couch", lambda: None)

    assert main_module.prepare_store() is False


def test_prepare_store_reports_index_failure(monkeypatch):
    db = FakeCouchDB()

    def broken_post(path, data=None, headers=None):
        raise RuntimeError("unauthorized")

    db.resource.post = broken_post
    monkeypatch.setattr(main_module, "get_couch", lambda: db)

    assert main_module.prepare_store() is False


def test_public_and_admin_routes_are_mounted(monkeypatch):
    monkeypatch.setattr(main_module, "prepare_store", lambda: True)
    db = seed_posts(FakeCouchDB(), make_post_doc("a", slug="hello"))

    original_overrides = dict(app.dependency_overrides)
    app.dependency_overrides[deps.get_posts_repo] = lambda: CouchPostsRepo(db)
    try:
        with TestClient(app) as client:
            assert client.get("/posts/hello").status_code == 200
            assert client.get("/admin/posts").status_code == 401

            app.dependency_overrides[get_current_user] = lambda: AuthUser(uid="author-1")
            res = client.get("/admin/posts")
            assert [p["id"] for p in res.json()["posts"]] == ["a"]
    finally:
        app.dependency_overrides = original_overrides


def test_request_validation_errors_use_field_paths(monkeypatch):
    monkeypatch.setattr(main_module, "prepare_store", lambda: True)

    original_overrides = dict(app.dependency_overrides)
    app.dependency_overrides[deps.get_posts_repo] = lambda: CouchPostsRepo(FakeCouchDB())
    app.dependency_overrides[get_current_user] = lambda: AuthUser(uid="author-1")
    try:
        with TestClient(app) as client:
            res = client.post(
                "/admin/posts",
                json={"title": "", "slug": "ok", "excerpt": "e", "content": "c"},
            )
    finally:
        app.dependency_overrides = original_overrides

    assert res.status_code == 422
    detail = res.json()["detail"]
    assert detail["message"] == "Validation failed"
    assert detail["errors"] == [{"path": "title", "message": "Title is required"}]


def test_cors_allows_site_origin(monkeypatch):
    monkeypatch.setattr(main_module, "prepare_store", lambda: True)

    with TestClient(app) as client:
        res = client.options(
            "/posts",
            headers={
                "Origin": main_module.settings.BASE_SITE_URL,
                "Access-Control-Request-Method": "GET",
            },
        )

    assert res.headers["access-control-allow-origin"] == main_module.settings.BASE_SITE_URL

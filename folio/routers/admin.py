import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from folio import dependencies as deps
from folio.routers.errors import http_error
from folio.schemas.blog import Post, PostListResponse
from folio.schemas.validators import ClientPost, UpdatePost
from folio.security import get_current_user, get_settings
from folio.services import image_service
from folio.services.auth_service import AuthUser
from folio.services.posts_service import PostsService
from folio.settings import Settings, settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin")


def _load_owned_post(post_id: str, user: AuthUser, service: PostsService) -> Post:
    post = service.get_post_by_id(post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    if post.authorId != user.uid:
        raise HTTPException(status_code=403, detail="You do not have access to this post")
    return post


@router.get("/posts", response_model=PostListResponse)
def list_my_posts(
    limit: int = Query(settings.ADMIN_PAGE_SIZE, ge=1, le=100),
    cursor: Optional[str] = Query(None),
    user: AuthUser = Depends(get_current_user),
    service: PostsService = Depends(deps.get_posts_service),
):
    """All of the signed-in author's posts, drafts included."""
    try:
        return service.list_all_my_posts(user.uid, limit=limit, cursor=cursor)
    except HTTPException:
        raise
    except Exception as e:
        raise http_error(e, "list your posts")


@router.post("/posts", response_model=Post, status_code=201)
def create_post(
    body: ClientPost,
    user: AuthUser = Depends(get_current_user),
    service: PostsService = Depends(deps.get_posts_service),
):
    try:
        return service.create_post(body, author_id=user.uid)
    except HTTPException:
        raise
    except Exception as e:
        raise http_error(e, "create post")


@router.get("/posts/{post_id}", response_model=Post)
def get_my_post(
    post_id: str,
    user: AuthUser = Depends(get_current_user),
    service: PostsService = Depends(deps.get_posts_service),
):
    try:
        return _load_owned_post(post_id, user, service)
    except HTTPException:
        raise
    except Exception as e:
        raise http_error(e, "retrieve post")


@router.patch("/posts/{post_id}", response_model=Post)
def update_post(
    post_id: str,
    body: UpdatePost,
    user: AuthUser = Depends(get_current_user),
    service: PostsService = Depends(deps.get_posts_service),
):
    try:
        _load_owned_post(post_id, user, service)
        return service.update_post(post_id, body)
    except HTTPException:
        raise
    except Exception as e:
        raise http_error(e, "update post")


@router.delete("/posts/{post_id}")
def delete_post(
    post_id: str,
    user: AuthUser = Depends(get_current_user),
    service: PostsService = Depends(deps.get_posts_service),
    current_settings: Settings = Depends(get_settings),
):
    """Delete a post, then try to remove its cover image from the CDN."""
    try:
        _load_owned_post(post_id, user, service)
        deleted = service.delete_post(post_id)
    except HTTPException:
        raise
    except Exception as e:
        raise http_error(e, "delete post")

    cover_deleted = False
    if deleted.coverImageUrl:
        cover_deleted = image_service.delete_image(
            deleted.coverImageUrl, current_settings=current_settings
        )
    return {"id": deleted.id, "deleted": True, "coverImageDeleted": cover_deleted}

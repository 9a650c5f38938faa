import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from folio import dependencies as deps
from folio.routers.errors import http_error
from folio.schemas.blog import AdjacentPosts, Post, PostListResponse, TagCount
from folio.services.posts_service import PostsService
from folio.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/posts", response_model=PostListResponse)
def list_posts(
    tag: Optional[str] = Query(None, description="Only posts carrying this tag"),
    search: Optional[str] = Query(
        None, description="Case-insensitive match on title or excerpt within the page"
    ),
    limit: int = Query(settings.POSTS_PAGE_SIZE, ge=1, le=50),
    cursor: Optional[str] = Query(None, description="Cursor from the previous page"),
    service: PostsService = Depends(deps.get_posts_service),
):
    """List published posts, newest first."""
    try:
        return service.list_published_posts(
            tag=tag, search=search, limit=limit, cursor=cursor
        )
    except HTTPException:
        raise
    except Exception as e:
        raise http_error(e, "retrieve posts")


@router.get("/posts/{slug}", response_model=Post)
def get_post(
    slug: str,
    service: PostsService = Depends(deps.get_posts_service),
):
    """Get a single published post by slug."""
    try:
        post = service.get_post_by_slug(slug, published_only=True)
        if not post:
            raise HTTPException(status_code=404, detail="Post not found")
        return post
    except HTTPException:
        raise
    except Exception as e:
        raise http_error(e, "retrieve post")


@router.get("/posts/{slug}/adjacent", response_model=AdjacentPosts)
def get_adjacent_posts(
    slug: str,
    service: PostsService = Depends(deps.get_posts_service),
):
    """Older and newer published neighbours of a post, for navigation."""
    try:
        return service.get_adjacent_posts(slug, published_only=True)
    except HTTPException:
        raise
    except Exception as e:
        raise http_error(e, "retrieve adjacent posts")


@router.get("/tags", response_model=List[TagCount])
def list_tags(service: PostsService = Depends(deps.get_posts_service)):
    try:
        return service.list_tags()
    except HTTPException:
        raise
    except Exception as e:
        raise http_error(e, "retrieve tags")

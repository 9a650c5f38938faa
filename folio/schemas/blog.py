import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class PostSummary(BaseModel):
    id: str
    slug: str
    title: str
    excerpt: str = ""
    tags: List[str] = Field(default_factory=list)
    coverImageUrl: Optional[str] = None
    authorId: str = ""
    published: bool = False
    readingTime: Optional[int] = None
    createdAt: Optional[datetime.datetime] = None
    updatedAt: Optional[datetime.datetime] = None


class Post(PostSummary):
    content: str = ""


class ListPostsResult(BaseModel):
    posts: List[Post] = Field(default_factory=list)
    cursor: Optional[str] = Field(
        None, description="Opaque marker to pass back for the next page."
    )
    hasMore: bool = False


class PostListResponse(BaseModel):
    posts: List[PostSummary] = Field(default_factory=list)
    cursor: Optional[str] = None
    hasMore: bool = False


class AdjacentPosts(BaseModel):
    previous: Optional[PostSummary] = None
    next: Optional[PostSummary] = None


class TagCount(BaseModel):
    tag: str
    count: int

from typing import Optional

from fastapi import Depends

from folio.db.couchdb import get_couch
from folio.repos.posts_repo import CouchPostsRepo
from folio.services.posts_service import PostsService


def get_posts_repo(couch_db=Depends(get_couch)) -> Optional[CouchPostsRepo]:
    if couch_db is None:
        return None
    return CouchPostsRepo(couch_db)


def get_posts_service(repo=Depends(get_posts_repo)):
    return PostsService(repo=repo)

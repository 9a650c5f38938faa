import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from folio.db.couchdb import get_couch
from folio.repos.posts_repo import CouchPostsRepo
from folio.routers import admin, auth, images, posts
from folio.schemas.validators import format_errors
from folio.settings import settings

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper()),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Folio API", description="Portfolio & blog backend")


def prepare_store() -> bool:
    """Create the Mango indexes the post queries rely on."""
    couch_db = get_couch()
    if couch_db is None:
        logger.warning("Post storage unavailable; post routes will answer 503")
        return False
    try:
        CouchPostsRepo(couch_db).ensure_indexes()
    except Exception as e:
        logger.error(f"Failed to ensure CouchDB indexes: {e}")
        return False
    logger.info("CouchDB indexes ready")
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    await run_in_threadpool(prepare_store)
    try:
        yield
    finally:
        logger.info("Folio API shutting down")


app.router.lifespan_context = lifespan

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.BASE_SITE_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "detail": {
                "message": "Validation failed",
                "errors": format_errors(exc.errors()),
            }
        },
    )


app.include_router(posts.router)
app.include_router(auth.router)
app.include_router(admin.router)
app.include_router(images.router)


@app.get("/")
async def root():
    return {"message": "Folio API is running"}

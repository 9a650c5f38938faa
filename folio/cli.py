import logging
from pathlib import Path

import click
import uvicorn

from folio.db.couchdb import get_couch
from folio.exceptions import AuthError, AuthNotConfiguredError, FolioError
from folio.repos.posts_repo import CouchPostsRepo
from folio.services.auth_service import IdentityClient
from folio.services.markdown_import import import_markdown_files
from folio.services.posts_service import PostsService
from folio.settings import settings

logger = logging.getLogger(__name__)

SAMPLE_POSTS = [
    {
        "title": "Hello, World",
        "slug": "hello-world",
        "excerpt": "A first post to check that the blog is wired up end to end.",
        "content": "# Hello, World\n\nThis is the first post on the new blog. "
        "It exists so the listing, the detail page and the tag filter have "
        "something to show.\n",
        "tags": ["meta"],
        "published": True,
    },
    {
        "title": "Writing Posts in Markdown",
        "slug": "writing-posts-in-markdown",
        "excerpt": "How posts are authored: Markdown files with YAML front matter.",
        "content": "# Writing Posts in Markdown\n\nEach post is a Markdown file. "
        "The front matter carries the title, tags and publish flag:\n\n"
        "```yaml\n---\ntitle: My Post\ntags: [python, notes]\npublished: true\n---\n```\n\n"
        "Run `folio import-posts ./posts` to load a directory of them.\n",
        "tags": ["markdown", "workflow"],
        "published": True,
    },
    {
        "title": "Draft: Upcoming Projects",
        "slug": "upcoming-projects",
        "excerpt": "Notes on what is coming next. Not published yet.",
        "content": "A list of ideas that are still taking shape.\n",
        "tags": ["projects"],
        "published": False,
    },
]


def build_posts_service() -> PostsService:
    couch_db = get_couch()
    return PostsService(CouchPostsRepo(couch_db) if couch_db is not None else None)


@click.group()
@click.option("--log-level", default=None, help="Overrides LOG_LEVEL.")
def cli(log_level):
    """Folio maintenance commands."""
    logging.basicConfig(
        level=getattr(logging, (log_level or settings.LOG_LEVEL).upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


@cli.command("import-posts")
@click.argument(
    "directory", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.option("--email", envvar="FOLIO_ADMIN_EMAIL", required=True)
@click.option(
    "--password", envvar="FOLIO_ADMIN_PASSWORD", prompt=True, hide_input=True
)
def import_posts(directory: Path, email: str, password: str):
    """Import every .md file in DIRECTORY as posts owned by the signed-in user."""
    service = build_posts_service()

    with IdentityClient() as identity:
        unsubscribe = identity.on_auth_state_change(
            lambda user: logger.info(
                f"Auth state: {user.email if user else 'signed out'}"
            )
        )
        try:
            session = identity.sign_in(email, password)
        except (AuthError, AuthNotConfiguredError) as e:
            unsubscribe()
            raise click.ClickException(str(e))

        try:
            report = import_markdown_files(
                service, directory.glob("*.md"), session.user.uid
            )
        except FolioError as e:
            raise click.ClickException(str(e))
        finally:
            identity.sign_out()
            unsubscribe()

    click.echo(f"Imported {len(report.created)} post(s)")
    for path, reason in report.skipped.items():
        click.echo(f"Skipped {path}: {reason}", err=True)


@cli.command()
@click.option("--author-id", required=True, help="UID of the account that owns the posts.")
def seed(author_id: str):
    """Insert a few sample posts."""
    service = build_posts_service()
    created = 0
    for data in SAMPLE_POSTS:
        try:
            service.create_post(data, author_id=author_id)
            created += 1
        except FolioError as e:
            click.echo(f"Skipped {data['slug']}: {e}", err=True)
    click.echo(f"Seeded {created} post(s)")


@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
@click.option("--reload", is_flag=True, help="Restart on code changes.")
def serve(host: str, port: int, reload: bool):
    """Run the API with uvicorn."""
    uvicorn.run("folio.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    cli()

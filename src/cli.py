"""Click CLI for operating the identity service.

Usage:
    stream-hub migrate
    stream-hub serve [--host HOST] [--port PORT] [--reload]
"""

import asyncio
import sys

import click

from src import database
from src.config import get_settings
from src.services.logging_service import configure_logging


@click.group()
def cli() -> None:
    """Stream Hub identity service: migrations and server."""
    pass


@cli.command()
@click.option("--postgres-url", default=None, help="Override POSTGRES_URL.")
def migrate(postgres_url: str | None) -> None:
    """Apply SQL migrations in filename order."""
    settings = get_settings()
    configure_logging(settings.log_level)

    async def _run() -> int:
        pool = await database.init_database(postgres_url or settings.postgres_url)
        try:
            return await database.run_migrations(pool)
        finally:
            await database.close_database(pool)

    try:
        applied = asyncio.run(_run())
    except Exception as e:
        click.echo(f"Migration failed: {e}", err=True)
        sys.exit(1)

    click.echo(f"Applied {applied} migration file(s)")


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address.")
@click.option("--port", default=8000, type=int, help="Bind port.")
@click.option("--reload", is_flag=True, help="Reload on code changes.")
def serve(host: str, port: int, reload: bool) -> None:
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "src.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


def main() -> None:
    cli()


if __name__ == "__main__":
    main()

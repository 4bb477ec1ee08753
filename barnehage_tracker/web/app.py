"""FastAPI application factory for Barnehage Tracker."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from barnehage_tracker import __version__
from barnehage_tracker.db.engine import Database

# Load .env file from project root
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)


def create_app(database: Database | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        database: Database handle to serve from. Defaults to the
                  DATABASE_URL / default SQLite file, tables created.
    """
    owns_database = database is None
    if database is None:
        database = Database.from_path()
        database.open()
        database.create_all()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        if owns_database:
            database.close()

    app = FastAPI(
        title="Barnehage Tracker",
        description="Open kindergarten spots in Oslo, tracked over time",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.database = database

    # Include routers (import here to avoid circular imports)
    from barnehage_tracker.web.routes import availability, kindergartens, preferences

    app.include_router(kindergartens.router)
    app.include_router(availability.router)
    app.include_router(preferences.router)

    return app

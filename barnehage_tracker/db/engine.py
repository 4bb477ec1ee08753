"""SQLite database engine and connection handle."""

import logging
import os
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)

# Default database path (can be overridden via environment variable)
DEFAULT_DB_PATH = Path.home() / ".barnehage_tracker" / "barnehage_tracker.db"


def get_database_url(db_path: Path | str | None = None) -> str:
    """
    Get the SQLite database URL.

    Args:
        db_path: Optional path to the database file. If None, uses
                 DATABASE_URL env var or default path.

    Returns:
        SQLite connection URL.
    """
    if db_path is not None:
        path = Path(db_path)
    elif os.environ.get("DATABASE_URL"):
        # Support full URL or just path
        url = os.environ["DATABASE_URL"]
        if url.startswith("sqlite"):
            return url
        path = Path(url)
    else:
        path = DEFAULT_DB_PATH

    # Ensure parent directory exists
    path.parent.mkdir(parents=True, exist_ok=True)

    return f"sqlite:///{path}"


def create_db_engine(url: str, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine.

    Args:
        url: Database URL.
        echo: If True, log all SQL statements.

    Returns:
        SQLAlchemy Engine instance.
    """
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=echo, connect_args=connect_args)


class Database:
    """
    Connection handle for the registry store.

    Owns one engine and its session factory. The handle is opened
    explicitly and closing it is idempotent; sessions can only be
    created while it is open.

    Usage:
        database = Database.from_path()
        database.open()
        try:
            with database.session() as session:
                ...
        finally:
            database.close()
    """

    def __init__(self, url: str, echo: bool = False) -> None:
        self.url = url
        self.echo = echo
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None

    @classmethod
    def from_path(cls, db_path: Path | str | None = None, echo: bool = False) -> "Database":
        """Create a handle for a SQLite file (see get_database_url)."""
        return cls(get_database_url(db_path), echo=echo)

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database is not open")
        return self._engine

    def open(self) -> "Database":
        """Create the engine. Opening an open handle is a no-op."""
        if self._engine is None:
            self._engine = create_db_engine(self.url, self.echo)
            self._session_factory = sessionmaker(
                autocommit=False, autoflush=False, bind=self._engine
            )
            logger.info(f"Database connected: {self.url}")
        return self

    def close(self) -> None:
        """Dispose the engine. Closing a closed handle is a no-op."""
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Database disconnected")

    def __enter__(self) -> "Database":
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Context manager for database sessions.

        Usage:
            with database.session() as session:
                # use session
                session.commit()

        Yields:
            SQLAlchemy Session instance.
        """
        if self._session_factory is None:
            raise RuntimeError("Database is not open")
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    def create_all(self) -> None:
        """
        Create all tables.

        Note: In production, use Alembic migrations instead.
        """
        from barnehage_tracker.db.models import Base

        Base.metadata.create_all(bind=self.engine)


def run_migrations(url: str) -> None:
    """
    Run Alembic migrations to the latest revision.

    Args:
        url: Database URL to migrate.
    """
    project_root = Path(__file__).resolve().parents[2]
    alembic_ini = project_root / "alembic.ini"

    if not alembic_ini.exists():
        raise FileNotFoundError(f"Alembic config not found: {alembic_ini}")

    config = Config(str(alembic_ini))
    config.set_main_option("sqlalchemy.url", url)
    command.upgrade(config, "head")

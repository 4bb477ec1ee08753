"""Database initialization and persistence layer."""

from barnehage_tracker.db.engine import (
    Database,
    create_db_engine,
    get_database_url,
    run_migrations,
)
from barnehage_tracker.db.models import (
    Base,
    KindergartenDB,
    NotificationPreferenceDB,
    SpotRecordDB,
)
from barnehage_tracker.db.repositories import (
    KindergartenRepository,
    NotificationPreferenceRepository,
)

__all__ = [
    # Engine
    "Database",
    "create_db_engine",
    "get_database_url",
    "run_migrations",
    # Models
    "Base",
    "KindergartenDB",
    "SpotRecordDB",
    "NotificationPreferenceDB",
    # Repositories
    "KindergartenRepository",
    "NotificationPreferenceRepository",
]

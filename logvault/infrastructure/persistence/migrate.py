"""Apply Alembic migrations.

Alembic is synchronous, so this runs before any event loop is started.
"""

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config as AlembicConfig
from sqlalchemy.engine import make_url

from logvault.infrastructure.persistence.database import resolve_sqlite_url

logger = logging.getLogger(__name__)

# alembic.ini and migrations/ sit at the repository root
PROJECT_ROOT = Path(__file__).resolve().parents[3]

_SYNC_DRIVERS = {"sqlite": "sqlite", "postgresql": "postgresql+psycopg2"}


def to_sync_url(database_url: str) -> str:
    """Swap the async driver of a URL for its synchronous counterpart."""
    url = make_url(resolve_sqlite_url(database_url))
    driver = _SYNC_DRIVERS.get(url.get_backend_name())
    if driver is not None:
        url = url.set(drivername=driver)
    return url.render_as_string(hide_password=False)


def alembic_config(database_url: str) -> AlembicConfig:
    config = AlembicConfig(str(PROJECT_ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    # set_main_option interpolates, so a literal % in a password must be doubled
    config.set_main_option("sqlalchemy.url", to_sync_url(database_url).replace("%", "%%"))
    return config


def run_migrations(database_url: str) -> None:
    command.upgrade(alembic_config(database_url), "head")
    logger.info("Database schema is at head")

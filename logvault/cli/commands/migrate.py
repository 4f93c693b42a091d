"""Migrate command - apply database migrations."""

import cyclopts

from logvault.cli.console import get_console
from logvault.cli.util import load_config
from logvault.config import configure_logging
from logvault.infrastructure.persistence.migrate import run_migrations

app = cyclopts.App(name="migrate", help="Apply pending database migrations")


@app.default
def migrate(config_file: str | None = None) -> None:
    """Upgrade the database to the latest schema.

    Args:
        config_file: YAML config file (defaults to LOGVAULT_CONFIG_FILE).
    """
    config = load_config(config_file)
    configure_logging(config.logging)

    console = get_console()
    with console.status("Running migrations..."):
        run_migrations(config.database.url)
    console.success("Database is up to date")

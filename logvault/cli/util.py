"""Shared helpers for CLI commands."""

import os
import sys

from pydantic import ValidationError

from logvault.cli.console import get_console
from logvault.config import Config, configure_logging
from logvault.infrastructure.persistence.migrate import run_migrations


def load_config(config_file: str | None = None) -> Config:
    """Load and validate configuration, exiting with details on failure.

    Args:
        config_file: YAML file to read, overriding LOGVAULT_CONFIG_FILE.
    """
    if config_file:
        os.environ["LOGVAULT_CONFIG_FILE"] = config_file

    try:
        # Pydantic Settings populates from env vars at runtime
        return Config()  # type: ignore[call-arg]
    except ValidationError as e:
        get_console().config_errors(e.errors())
        sys.exit(1)


def prepare(config_file: str | None = None, *, migrate: bool = True) -> Config:
    """Load config, configure logging and apply migrations where enabled."""
    config = load_config(config_file)
    configure_logging(config.logging)
    if migrate and config.database.auto_migrate:
        run_migrations(config.database.url)
    return config

"""Migration utilities for programmatic migration running."""

import os
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from sqlalchemy import create_engine

from shipquote.db.database import get_database_url


def get_alembic_config() -> Config:
    """Get Alembic config pointing to the bundled migration scripts."""
    here = Path(__file__).parent
    config = Config(str(here / "alembic.ini"))
    config.set_main_option("script_location", str(here / "alembic"))
    config.set_main_option("sqlalchemy.url", os.getenv("DATABASE_URL", get_database_url()))
    return config


def run_migrations() -> None:
    """Run all pending migrations."""
    command.upgrade(get_alembic_config(), "head")


def get_current_revision() -> str | None:
    """Get the current migration revision."""
    url = get_alembic_config().get_main_option("sqlalchemy.url")

    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    engine = create_engine(url, connect_args=connect_args)
    try:
        with engine.connect() as conn:
            return MigrationContext.configure(conn).get_current_revision()
    finally:
        engine.dispose()

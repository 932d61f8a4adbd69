from logging.config import fileConfig
from pathlib import Path

from sqlalchemy import engine_from_config, pool

from alembic import context
from termin_manager.core.settings import settings
from termin_manager.db import Base
from termin_manager.models.team import Team, TeamSession  # noqa: F401
from termin_manager.models.appointment import Appointment  # noqa: F401
from termin_manager.models.notification import Notification  # noqa: F401
from termin_manager.models.change_log import ChangeLogEntry  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

BACKEND_DIR = Path(__file__).resolve().parents[1]


def database_url() -> str:
    """The app's DATABASE_URL; a relative SQLite path resolves against backend/."""
    url = settings.DATABASE_URL
    prefix = "sqlite:///./"
    if url.startswith(prefix):
        return "sqlite:///" + (BACKEND_DIR / url[len(prefix):]).resolve().as_posix()
    return url


config.set_main_option("sqlalchemy.url", database_url())


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from marketplace.db_migrations import to_sqlalchemy_url


config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

# Raw SQL revisions; there is no ORM metadata to autogenerate from.
target_metadata = None


def _database_url() -> str:
    configured = config.get_main_option("sqlalchemy.url") or ""
    if config.cmd_opts is None:
        # Invoked through `flask db`, which already resolved the app's DB_PATH.
        return to_sqlalchemy_url(configured)
    return to_sqlalchemy_url(os.environ.get("DATABASE_URL") or configured)


def run_migrations_offline() -> None:
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = dict(config.get_section(config.config_ini_section) or {})
    section["sqlalchemy.url"] = _database_url()
    engine = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from erp_obras.db_migrations import to_sqlalchemy_url


config = context.config

if config.config_file_name is not None:
    # keep the app loggers alive when migrations run inside `flask db`
    fileConfig(config.config_file_name, disable_existing_loggers=False)

# Tables are JSON documents per collection; revisions use raw DDL, not models.
target_metadata = None


def _database_url() -> str:
    env_url = os.environ.get("DATABASE_URL") or os.environ.get("DB_PATH")
    return to_sqlalchemy_url(env_url or config.get_main_option("sqlalchemy.url") or "")


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def run_migrations_offline() -> None:
    url = _database_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        render_as_batch=_is_sqlite(url),
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = _database_url()
    section = dict(config.get_section(config.config_ini_section) or {})
    section["sqlalchemy.url"] = url

    engine = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool, future=True)
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=_is_sqlite(url),
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()

from __future__ import annotations

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from tenderhub.config import Config
from tenderhub.db_migrations import VERSION_TABLE, to_sqlalchemy_url


alembic_cfg = context.config

if alembic_cfg.config_file_name is not None:
    fileConfig(alembic_cfg.config_file_name, disable_existing_loggers=False)


def tender_database_url() -> str:
    # `flask db ...` passes the app's DB_PATH; a bare `alembic` run falls back to Config.
    return alembic_cfg.get_main_option("sqlalchemy.url") or to_sqlalchemy_url(Config.DB_PATH)


def migration_options() -> dict:
    return {
        "target_metadata": None,
        "version_table": alembic_cfg.get_main_option("version_table") or VERSION_TABLE,
    }


def run_offline() -> None:
    context.configure(url=tender_database_url(), literal_binds=True, **migration_options())
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    engine = create_engine(tender_database_url(), poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            context.configure(connection=connection, **migration_options())
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    run_online()

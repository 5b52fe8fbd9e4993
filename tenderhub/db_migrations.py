from __future__ import annotations

from pathlib import Path
from typing import Dict, List

import click
from alembic import command
from alembic.config import Config as AlembicConfig
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from flask import Flask
from sqlalchemy import create_engine, inspect, pool

from tenderhub.db import SCHEMA_TABLES


PROJECT_ROOT = Path(__file__).resolve().parents[1]
MIGRATIONS_DIR = PROJECT_ROOT / "migrations"
VERSION_TABLE = "tenderhub_schema_version"


def to_sqlalchemy_url(db_path: str) -> str:
    """Map a ``DB_PATH`` value (sqlite file or postgres URL) to a SQLAlchemy URL."""
    value = (db_path or "").strip()
    if not value:
        raise RuntimeError("DB_PATH is empty; set DATABASE_URL or DB_PATH before migrating.")
    scheme, sep, rest = value.partition("://")
    if sep and scheme == "postgres":
        return f"postgresql://{rest}"
    if sep and scheme.split("+")[0] in ("postgresql", "sqlite"):
        return value
    return "sqlite:///" + Path(value).expanduser().resolve().as_posix()


def build_alembic_config(app: Flask) -> AlembicConfig:
    ini_path = PROJECT_ROOT / "alembic.ini"
    if not ini_path.is_file():
        raise RuntimeError(f"Missing {ini_path}; the tender schema migrations cannot run.")
    cfg = AlembicConfig(str(ini_path))
    cfg.set_main_option("script_location", MIGRATIONS_DIR.as_posix())
    cfg.set_main_option("sqlalchemy.url", to_sqlalchemy_url(app.config["DB_PATH"]))
    cfg.set_main_option("version_table", VERSION_TABLE)
    return cfg


def schema_status(app: Flask) -> Dict[str, object]:
    """Applied vs. head revision and which tender tables are missing."""
    cfg = build_alembic_config(app)
    head = ScriptDirectory.from_config(cfg).get_current_head()
    engine = create_engine(cfg.get_main_option("sqlalchemy.url"), poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            applied = MigrationContext.configure(
                connection,
                opts={"version_table": VERSION_TABLE},
            ).get_current_revision()
            present = set(inspect(connection).get_table_names())
    finally:
        engine.dispose()
    missing: List[str] = [table for table in SCHEMA_TABLES if table not in present]
    return {
        "revision": applied,
        "head": head,
        "up_to_date": applied == head and not missing,
        "missing_tables": missing,
    }


def register_db_cli(app: Flask) -> None:
    @app.cli.group("db")
    def db_group() -> None:
        """Tender schema migrations."""

    @db_group.command("upgrade")
    @click.argument("revision", default="head")
    def db_upgrade(revision: str) -> None:
        command.upgrade(build_alembic_config(app), revision)
        status = schema_status(app)
        click.echo(f"Tender schema at {status['revision'] or 'base'}.")

    @db_group.command("downgrade")
    @click.argument("revision", default="-1")
    def db_downgrade(revision: str) -> None:
        command.downgrade(build_alembic_config(app), revision)
        status = schema_status(app)
        click.echo(f"Tender schema at {status['revision'] or 'base'}.")

    @db_group.command("current")
    def db_current() -> None:
        click.echo(schema_status(app)["revision"] or "base")

    @db_group.command("status")
    def db_status() -> None:
        status = schema_status(app)
        click.echo(f"revision: {status['revision'] or 'base'} (head {status['head']})")
        if status["missing_tables"]:
            click.echo("missing tables: " + ", ".join(status["missing_tables"]))
        if not status["up_to_date"]:
            raise click.ClickException("Tender schema is not up to date; run `flask db upgrade`.")
        click.echo("Tender schema is up to date.")

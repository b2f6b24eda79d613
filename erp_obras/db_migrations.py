from __future__ import annotations

from pathlib import Path

import click
from alembic import command
from alembic.config import Config as AlembicConfig
from flask import Flask


def _project_root() -> Path:
    return Path(__file__).resolve().parents[1]


def to_sqlalchemy_url(raw_db_path: str) -> str:
    raw = (raw_db_path or "").strip()
    if not raw:
        raise RuntimeError("DB_PATH indefinido para migrations.")

    if raw.startswith("postgres://"):
        return "postgresql://" + raw[len("postgres://") :]
    if raw.startswith(("postgresql://", "postgresql+", "sqlite://", "sqlite+pysqlite://")):
        return raw

    return f"sqlite:///{Path(raw).expanduser().resolve().as_posix()}"


def build_alembic_config(app: Flask) -> AlembicConfig:
    root = _project_root()
    alembic_ini = root / "alembic.ini"
    if not alembic_ini.exists():
        raise RuntimeError("alembic.ini nao encontrado na raiz do projeto.")

    alembic_cfg = AlembicConfig(str(alembic_ini))
    alembic_cfg.set_main_option("script_location", (root / "migrations").as_posix())
    alembic_cfg.set_main_option("sqlalchemy.url", to_sqlalchemy_url(app.config["DB_PATH"]))
    return alembic_cfg


def register_db_cli(app: Flask) -> None:
    @app.cli.group("db")
    def db_group() -> None:
        """Migrations (Alembic) e dados de demonstracao."""

    @db_group.command("upgrade")
    @click.argument("revision", required=False, default="head")
    def db_upgrade(revision: str) -> None:
        command.upgrade(build_alembic_config(app), revision)
        click.echo(f"Migration aplicada ate {revision}.")

    @db_group.command("downgrade")
    @click.argument("revision", required=False, default="-1")
    def db_downgrade(revision: str) -> None:
        command.downgrade(build_alembic_config(app), revision)
        click.echo(f"Rollback aplicado ate {revision}.")

    @db_group.command("current")
    def db_current() -> None:
        command.current(build_alembic_config(app), verbose=True)

    @db_group.command("seed-demo")
    @click.option("--workspace", "workspace_id", default=None, help="Workspace que recebe os dados.")
    @click.option("--force", is_flag=True, help="Semeia mesmo se o workspace ja tiver registros.")
    def db_seed_demo(workspace_id: str | None, force: bool) -> None:
        from erp_obras.db import get_db
        from erp_obras.seed import seed_demo_data
        from erp_obras.workspace import scoped_workspace_id

        scope = scoped_workspace_id(workspace_id)
        db = get_db()
        created = seed_demo_data(db, workspace_id=scope, force=force)
        db.commit()
        if created:
            click.echo(f"Dados de demonstracao criados em {scope}.")
        else:
            click.echo(f"Workspace {scope} ja possui dados; nada a fazer.")

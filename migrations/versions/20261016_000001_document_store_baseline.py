"""Document store baseline from erp_obras.db

Revision ID: 20261016_000001
Revises:
Create Date: 2026-10-16 00:00:01
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op

from erp_obras.db import SCHEMA_INDEXES, SCHEMA_TABLES, schema_statements


# revision identifiers, used by Alembic.
revision: str = "20261016_000001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _backend() -> str:
    dialect = (op.get_bind().dialect.name or "").lower()
    return "postgres" if dialect.startswith("postgres") else "sqlite"


def upgrade() -> None:
    for statement in schema_statements(_backend()):
        op.execute(statement)


def downgrade() -> None:
    for index in SCHEMA_INDEXES:
        op.execute(f"DROP INDEX IF EXISTS {index}")
    for table in SCHEMA_TABLES:
        op.execute(f"DROP TABLE IF EXISTS {table}")

"""create roster table

Revision ID: a1c4e7f20b13
Revises:
Create Date: 2026-10-18

One row per (assignable, roleable, role_key) binding. Table name, tenant
column name and id column types follow ROSTER_TABLE,
MULTITENANCY_TENANT_COLUMN and ID_STRATEGY at migration time. The tenant
column and its indexes are always created; the column stays NULL while
multitenancy is off.
"""

from collections.abc import Sequence
from typing import Union

import sqlalchemy as sa
from alembic import op

from porter.core.config import get_settings
from porter.domain.enums import IdStrategy

revision: str = "a1c4e7f20b13"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column(strategy: IdStrategy) -> sa.Column:
    if strategy == IdStrategy.INTEGER:
        return sa.Column("id", sa.Integer(), autoincrement=True, nullable=False)
    if strategy == IdStrategy.UUID:
        return sa.Column("id", sa.Uuid(), nullable=False)
    return sa.Column("id", sa.String(length=26), nullable=False)


def _morph_id_type(strategy: IdStrategy) -> sa.types.TypeEngine:
    if strategy == IdStrategy.INTEGER:
        return sa.BigInteger().with_variant(sa.Integer(), "sqlite")
    return sa.String(length=64)


def upgrade() -> None:
    settings = get_settings()
    table = settings.roster_table
    tenant = settings.multitenancy_tenant_column
    morph_id = _morph_id_type(settings.id_strategy)
    op.create_table(
        table,
        _id_column(settings.id_strategy),
        sa.Column("assignable_type", sa.String(length=255), nullable=False),
        sa.Column("assignable_id", morph_id, nullable=False),
        sa.Column("roleable_type", sa.String(length=255), nullable=False),
        sa.Column("roleable_id", morph_id, nullable=False),
        sa.Column("role_key", sa.String(length=255), nullable=False),
        sa.Column(tenant, sa.String(length=64), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "assignable_type",
            "assignable_id",
            "roleable_type",
            "roleable_id",
            "role_key",
            name=f"uq_{table}_binding",
        ),
    )
    op.create_index(f"ix_{table}_assignable", table, ["assignable_id", "assignable_type"])
    op.create_index(f"ix_{table}_roleable", table, ["roleable_id", "roleable_type"])
    op.create_index(f"ix_{table}_role_key", table, ["role_key"])
    op.create_index(f"ix_{table}_tenant", table, [tenant])
    op.create_index(
        f"ix_{table}_tenant_assignable", table, [tenant, "assignable_type", "assignable_id"]
    )
    op.create_index(
        f"ix_{table}_tenant_roleable", table, [tenant, "roleable_type", "roleable_id"]
    )


def downgrade() -> None:
    table = get_settings().roster_table
    op.drop_index(f"ix_{table}_tenant_roleable", table_name=table)
    op.drop_index(f"ix_{table}_tenant_assignable", table_name=table)
    op.drop_index(f"ix_{table}_tenant", table_name=table)
    op.drop_index(f"ix_{table}_role_key", table_name=table)
    op.drop_index(f"ix_{table}_roleable", table_name=table)
    op.drop_index(f"ix_{table}_assignable", table_name=table)
    op.drop_table(table)

"""Roster ORM model: one row per (assignable, roleable, role_key) binding.

Table name, tenant column name and id column types come from settings at
import time (roster_table, multitenancy_tenant_column, id_strategy). The
tenant column always exists and stays NULL while multitenancy is off.
"""

from sqlalchemy import Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from porter.core.config import get_settings
from porter.domain.enums import IdStrategy
from porter.infrastructure.persistence.database import Base
from porter.infrastructure.persistence.models.mixins import (
    TimestampMixin,
    id_mixin_for,
    morph_id_type,
)

_settings = get_settings()
ROSTER_TABLE = _settings.roster_table
TENANT_COLUMN = _settings.multitenancy_tenant_column
ROLE_KEY_LENGTH = 255
TENANT_KEY_LENGTH = 64

_IdMixin = id_mixin_for(_settings.id_strategy)
_MorphId = morph_id_type(_settings.id_strategy)


def normalize_morph_id(value: str | int) -> str | int:
    """Coerce an entity id to the python type of the morph id columns."""
    if _settings.id_strategy == IdStrategy.INTEGER:
        return int(value)
    return str(value)


class Roster(_IdMixin, TimestampMixin, Base):
    """Role binding. Unique (assignable_type, assignable_id, roleable_type, roleable_id, role_key)."""

    __tablename__ = ROSTER_TABLE

    assignable_type: Mapped[str] = mapped_column(String(255), nullable=False)
    assignable_id: Mapped[str | int] = mapped_column(_MorphId, nullable=False)
    roleable_type: Mapped[str] = mapped_column(String(255), nullable=False)
    roleable_id: Mapped[str | int] = mapped_column(_MorphId, nullable=False)
    role_key: Mapped[str] = mapped_column(String(ROLE_KEY_LENGTH), nullable=False)
    tenant_id: Mapped[str | None] = mapped_column(
        TENANT_COLUMN, String(TENANT_KEY_LENGTH), nullable=True
    )

    __table_args__ = (
        UniqueConstraint(
            "assignable_type",
            "assignable_id",
            "roleable_type",
            "roleable_id",
            "role_key",
            name=f"uq_{ROSTER_TABLE}_binding",
        ),
        Index(f"ix_{ROSTER_TABLE}_assignable", "assignable_id", "assignable_type"),
        Index(f"ix_{ROSTER_TABLE}_roleable", "roleable_id", "roleable_type"),
        Index(f"ix_{ROSTER_TABLE}_role_key", "role_key"),
        Index(f"ix_{ROSTER_TABLE}_tenant", TENANT_COLUMN),
        Index(
            f"ix_{ROSTER_TABLE}_tenant_assignable",
            TENANT_COLUMN,
            "assignable_type",
            "assignable_id",
        ),
        Index(
            f"ix_{ROSTER_TABLE}_tenant_roleable",
            TENANT_COLUMN,
            "roleable_type",
            "roleable_id",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Roster {self.assignable_type}:{self.assignable_id} -> "
            f"{self.roleable_type}:{self.roleable_id}>"
        )

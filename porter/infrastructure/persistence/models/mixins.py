"""SQLAlchemy mixins for roster columns that depend on configuration (DRY).

Provides: id_mixin_for (primary key per id_strategy), morph_id_type
(column type of assignable_id / roleable_id) and TimestampMixin.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, declared_attr, mapped_column
from sqlalchemy.sql import func
from sqlalchemy.types import TypeEngine

from porter.domain.enums import IdStrategy
from porter.shared.utils.generators import generate_ulid, generate_uuid

ULID_LENGTH = 26
MORPH_ID_LENGTH = 64


class UlidMixin:
    """Mixin for models using ULID as primary key."""

    @declared_attr
    def id(cls) -> Mapped[str]:
        return mapped_column(String(ULID_LENGTH), primary_key=True, default=generate_ulid)


class UuidMixin:
    """Mixin for models using UUID4 as primary key."""

    @declared_attr
    def id(cls) -> Mapped[Any]:
        return mapped_column(Uuid, primary_key=True, default=generate_uuid)


class IntegerIdMixin:
    """Mixin for models using an autoincrement integer primary key."""

    @declared_attr
    def id(cls) -> Mapped[int]:
        return mapped_column(Integer, primary_key=True, autoincrement=True)


_ID_MIXINS: dict[IdStrategy, type] = {
    IdStrategy.ULID: UlidMixin,
    IdStrategy.UUID: UuidMixin,
    IdStrategy.INTEGER: IntegerIdMixin,
}


def id_mixin_for(strategy: IdStrategy) -> type:
    return _ID_MIXINS[strategy]


def morph_id_type(strategy: IdStrategy) -> TypeEngine[Any]:
    """Column type for polymorphic ids: integers for 'integer', strings otherwise."""
    if strategy == IdStrategy.INTEGER:
        return BigInteger().with_variant(Integer(), "sqlite")
    return String(MORPH_ID_LENGTH)


class TimestampMixin:
    """Mixin for created_at and updated_at (server defaults, timezone-aware)."""

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        )

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            server_default=func.now(),
            onupdate=func.now(),
            nullable=False,
        )

"""Roster repository: role bindings between assignable and roleable entities.

Works on one AsyncSession; the caller owns the transaction. Mutations
for a pair must be preceded by lock_pair() in the same transaction.
"""

from __future__ import annotations

import hashlib
from typing import Any

from sqlalchemy import ColumnElement, delete, func, select, text
from sqlalchemy import exists as sa_exists
from sqlalchemy.ext.asyncio import AsyncSession

from porter.infrastructure.persistence.models.roster import Roster, normalize_morph_id


def pair_lock_key(assignable: Any, roleable: Any) -> int:
    """Signed 64-bit advisory lock key for a pair (stable across processes)."""
    raw = (
        f"{assignable.entity_type}|{assignable.entity_id}|"
        f"{roleable.entity_type}|{roleable.entity_id}"
    )
    digest = hashlib.sha256(raw.encode()).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


class RosterRepository:
    """Roster table only. Lock, insert, delete and query bindings."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @property
    def _is_postgres(self) -> bool:
        bind = self.db.bind
        return bind is not None and bind.dialect.name == "postgresql"

    @staticmethod
    def _assignable_criteria(assignable: Any) -> list[ColumnElement[bool]]:
        return [
            Roster.assignable_type == assignable.entity_type,
            Roster.assignable_id == normalize_morph_id(assignable.entity_id),
        ]

    @staticmethod
    def _roleable_criteria(roleable: Any) -> list[ColumnElement[bool]]:
        return [
            Roster.roleable_type == roleable.entity_type,
            Roster.roleable_id == normalize_morph_id(roleable.entity_id),
        ]

    def _pair_criteria(self, assignable: Any, roleable: Any) -> list[ColumnElement[bool]]:
        return self._assignable_criteria(assignable) + self._roleable_criteria(roleable)

    @staticmethod
    def _tenant_criteria(tenant: str | None) -> list[ColumnElement[bool]]:
        return [Roster.tenant_id == tenant] if tenant is not None else []

    async def lock_pair(self, assignable: Any, roleable: Any) -> list[Roster]:
        """Serialize mutations on the pair for the rest of the transaction.

        PostgreSQL: transaction-scoped advisory lock on the pair (covers the
        no-rows case), then row locks on existing bindings. SQLite holds a
        database-wide write lock from the first write, so only the rows are read.
        """
        if self._is_postgres:
            await self.db.execute(
                text("SELECT pg_advisory_xact_lock(:key)"),
                {"key": pair_lock_key(assignable, roleable)},
            )
        result = await self.db.execute(
            select(Roster)
            .where(*self._pair_criteria(assignable, roleable))
            .order_by(Roster.created_at, Roster.id)
            .with_for_update()
        )
        return list(result.scalars().all())

    async def find_for_pair(
        self, assignable: Any, roleable: Any, tenant: str | None = None
    ) -> list[Roster]:
        result = await self.db.execute(
            select(Roster)
            .where(
                *self._pair_criteria(assignable, roleable),
                *self._tenant_criteria(tenant),
            )
            .order_by(Roster.created_at, Roster.id)
        )
        return list(result.scalars().all())

    async def first_for_pair(
        self, assignable: Any, roleable: Any, tenant: str | None = None
    ) -> Roster | None:
        result = await self.db.execute(
            select(Roster)
            .where(
                *self._pair_criteria(assignable, roleable),
                *self._tenant_criteria(tenant),
            )
            .order_by(Roster.created_at, Roster.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def exists(
        self,
        assignable: Any,
        roleable: Any,
        role_key: str | None = None,
        tenant: str | None = None,
    ) -> bool:
        """True if the pair holds role_key (any role when role_key is None)."""
        criteria = self._pair_criteria(assignable, roleable) + self._tenant_criteria(tenant)
        if role_key is not None:
            criteria.append(Roster.role_key == role_key)
        result = await self.db.execute(select(sa_exists().where(*criteria)))
        return bool(result.scalar())

    async def insert_if_absent(
        self,
        assignable: Any,
        roleable: Any,
        role_key: str,
        tenant_id: str | None = None,
    ) -> tuple[Roster, bool]:
        """Return (row, created). An existing identical binding is returned untouched.

        A concurrent insert of the same binding surfaces as IntegrityError
        on flush; the caller retries the whole transaction.
        """
        result = await self.db.execute(
            select(Roster).where(
                *self._pair_criteria(assignable, roleable),
                Roster.role_key == role_key,
            )
        )
        existing = result.scalars().first()
        if existing is not None:
            return existing, False
        row = Roster(
            assignable_type=assignable.entity_type,
            assignable_id=normalize_morph_id(assignable.entity_id),
            roleable_type=roleable.entity_type,
            roleable_id=normalize_morph_id(roleable.entity_id),
            role_key=role_key,
            tenant_id=tenant_id,
        )
        self.db.add(row)
        await self.db.flush()
        await self.db.refresh(row)
        return row, True

    async def _delete_where(self, criteria: list[ColumnElement[bool]]) -> list[Roster]:
        """Delete rows matching criteria; return the rows as they were before deletion."""
        result = await self.db.execute(select(Roster).where(*criteria))
        rows = list(result.scalars().all())
        if not rows:
            return []
        await self.db.execute(
            delete(Roster).where(*criteria).execution_options(synchronize_session="fetch")
        )
        return rows

    async def delete_for_pair(self, assignable: Any, roleable: Any) -> list[Roster]:
        """Delete every binding of the pair (any role)."""
        return await self._delete_where(self._pair_criteria(assignable, roleable))

    async def delete_for_pair_except(
        self, assignable: Any, roleable: Any, keep_role_key: str
    ) -> list[Roster]:
        """Delete every binding of the pair whose role_key differs from keep_role_key."""
        return await self._delete_where(
            self._pair_criteria(assignable, roleable) + [Roster.role_key != keep_role_key]
        )

    async def update_role_key(self, row: Roster, role_key: str) -> Roster:
        row.role_key = role_key
        await self.db.flush()
        await self.db.refresh(row)
        return row

    async def list_for_roleable(
        self,
        roleable: Any,
        role_key: str | None = None,
        tenant: str | None = None,
    ) -> list[Roster]:
        """Bindings on roleable, oldest first, optionally filtered by role_key."""
        criteria = self._roleable_criteria(roleable) + self._tenant_criteria(tenant)
        if role_key is not None:
            criteria.append(Roster.role_key == role_key)
        result = await self.db.execute(
            select(Roster).where(*criteria).order_by(Roster.created_at, Roster.id)
        )
        return list(result.scalars().all())

    async def count_by_role_key(self) -> dict[str, int]:
        """Number of bindings per stored role_key (whole table, unscoped)."""
        result = await self.db.execute(
            select(Roster.role_key, func.count()).group_by(Roster.role_key)
        )
        return {role_key: count for role_key, count in result.all()}

    async def list_assignables_with_role(
        self, roleable: Any, role_key: str, tenant: str | None = None
    ) -> list[tuple[str, str | int]]:
        """(assignable_type, assignable_id) holding role_key on roleable."""
        result = await self.db.execute(
            select(Roster.assignable_type, Roster.assignable_id)
            .where(
                *self._roleable_criteria(roleable),
                Roster.role_key == role_key,
                *self._tenant_criteria(tenant),
            )
            .order_by(Roster.created_at, Roster.id)
        )
        return [(row.assignable_type, row.assignable_id) for row in result.all()]

    async def list_roleables_for_assignable(
        self,
        assignable: Any,
        roleable_type: str,
        roleable_ids: list[str | int] | None = None,
        tenant: str | None = None,
    ) -> list[str | int]:
        """Distinct ids of roleables of roleable_type the assignable holds any role on."""
        criteria = (
            self._assignable_criteria(assignable)
            + [Roster.roleable_type == roleable_type]
            + self._tenant_criteria(tenant)
        )
        if roleable_ids is not None:
            if not roleable_ids:
                return []
            criteria.append(
                Roster.roleable_id.in_([normalize_morph_id(i) for i in roleable_ids])
            )
        result = await self.db.execute(
            select(Roster.roleable_id).where(*criteria).distinct().order_by(Roster.roleable_id)
        )
        return list(result.scalars().all())

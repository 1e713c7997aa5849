"""Repository interfaces (ports) for the application layer.

Protocols define contracts that infrastructure implementations must fulfill (DIP).
Entities are passed as anything exposing entity_type / entity_id.
"""

from __future__ import annotations

from typing import Any, Protocol


class IRosterRepository(Protocol):
    """Protocol for the roster repository (one instance per session)."""

    async def lock_pair(self, assignable: Any, roleable: Any) -> list[Any]:
        """Lock the pair for the current transaction; return its bindings, oldest first."""

    async def find_for_pair(
        self, assignable: Any, roleable: Any, tenant: str | None = None
    ) -> list[Any]:
        """Return bindings of the pair, oldest first."""

    async def first_for_pair(
        self, assignable: Any, roleable: Any, tenant: str | None = None
    ) -> Any | None:
        """Return the oldest binding of the pair, or None."""

    async def exists(
        self,
        assignable: Any,
        roleable: Any,
        role_key: str | None = None,
        tenant: str | None = None,
    ) -> bool:
        """Return True if the pair holds role_key (any role when None)."""

    async def insert_if_absent(
        self,
        assignable: Any,
        roleable: Any,
        role_key: str,
        tenant_id: str | None = None,
    ) -> tuple[Any, bool]:
        """Insert the binding unless it exists; return (row, created)."""

    async def delete_for_pair(self, assignable: Any, roleable: Any) -> list[Any]:
        """Delete all bindings of the pair; return the deleted rows."""

    async def delete_for_pair_except(
        self, assignable: Any, roleable: Any, keep_role_key: str
    ) -> list[Any]:
        """Delete bindings of the pair other than keep_role_key; return the deleted rows."""

    async def update_role_key(self, row: Any, role_key: str) -> Any:
        """Overwrite role_key of row."""

    async def list_for_roleable(
        self, roleable: Any, role_key: str | None = None, tenant: str | None = None
    ) -> list[Any]:
        """Return bindings on roleable, oldest first."""

    async def list_assignables_with_role(
        self, roleable: Any, role_key: str, tenant: str | None = None
    ) -> list[tuple[str, str | int]]:
        """Return (assignable_type, assignable_id) pairs holding role_key on roleable."""

    async def list_roleables_for_assignable(
        self,
        assignable: Any,
        roleable_type: str,
        roleable_ids: list[str | int] | None = None,
        tenant: str | None = None,
    ) -> list[str | int]:
        """Return ids of roleables of roleable_type the assignable holds a role on."""

    async def count_by_role_key(self) -> dict[str, int]:
        """Return the number of bindings per stored role_key."""

"""Role registry: the explicit, immutable catalogue of role definitions.

Built once at startup from settings.roles (or DEFAULT_ROLES). Resolves
names and storage keys back to RoleIdentity and answers hierarchy
queries by level. refresh() is the only way to change the catalogue.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any

from porter.application.services.role_keys import PlainKeyCodec, RoleKeyCodec
from porter.domain.exceptions import (
    InvalidRoleKeyException,
    RoleNotFoundException,
    RoleRegistryException,
)
from porter.domain.value_objects.role import RoleIdentity

if TYPE_CHECKING:
    from porter.core.config import RoleDefinition

logger = logging.getLogger(__name__)

DEFAULT_ROLES: tuple[RoleIdentity, ...] = (
    RoleIdentity(
        "admin", 6, "Administrator",
        "Full system access with all administrative privileges",
    ),
    RoleIdentity(
        "manager", 5, "Manager",
        "Manages teams and resources with elevated permissions",
    ),
    RoleIdentity(
        "editor", 4, "Editor",
        "Creates and modifies content with publishing capabilities",
    ),
    RoleIdentity(
        "contributor", 3, "Contributor",
        "Contributes content and collaborates on projects",
    ),
    RoleIdentity(
        "viewer", 2, "Viewer",
        "Read-only access to view content and resources",
    ),
    RoleIdentity(
        "guest", 1, "Guest",
        "Limited access for temporary or anonymous users",
    ),
)


def roles_from_definitions(definitions: Sequence[RoleDefinition]) -> list[RoleIdentity]:
    """Convert settings.roles entries to RoleIdentity; empty input yields DEFAULT_ROLES."""
    if not definitions:
        return list(DEFAULT_ROLES)
    return [
        RoleIdentity(
            name=d.name,
            level=d.level,
            label=d.label or "",
            description=d.description or "",
        )
        for d in definitions
    ]


class RoleRegistry:
    """Name/key -> RoleIdentity lookups and level ordering.

    Storage keys are derived once per role when the registry is built, so
    hashed-key resolution costs one dict lookup after the O(R) build.
    """

    def __init__(
        self,
        roles: Iterable[RoleIdentity],
        codec: RoleKeyCodec | None = None,
    ) -> None:
        self._codec = codec or PlainKeyCodec()
        self._load(list(roles))

    def _load(self, roles: list[RoleIdentity]) -> None:
        by_name: dict[str, RoleIdentity] = {}
        by_level: dict[int, str] = {}
        for role in roles:
            if role.name in by_name:
                raise RoleRegistryException(
                    f"Duplicate role name '{role.name}'", name=role.name
                )
            if role.level in by_level:
                raise RoleRegistryException(
                    f"Roles '{by_level[role.level]}' and '{role.name}' share level {role.level}",
                    level=role.level,
                    names=[by_level[role.level], role.name],
                )
            by_name[role.name] = role
            by_level[role.level] = role.name
        self._by_name = by_name
        self._ordered = sorted(by_name.values(), key=lambda r: r.level, reverse=True)
        self._key_by_name = {name: self._codec.derive_key(name) for name in by_name}
        self._name_by_key = {key: name for name, key in self._key_by_name.items()}

    @property
    def codec(self) -> RoleKeyCodec:
        return self._codec

    def refresh(self, roles: Iterable[RoleIdentity]) -> None:
        """Replace the catalogue. Validates before swapping; old state is kept on error."""
        new_roles = list(roles)
        previous = (
            self._by_name,
            self._ordered,
            self._key_by_name,
            self._name_by_key,
        )
        try:
            self._load(new_roles)
        except RoleRegistryException:
            (
                self._by_name,
                self._ordered,
                self._key_by_name,
                self._name_by_key,
            ) = previous
            raise
        logger.info("Role registry refreshed: %d roles", len(new_roles))

    def all(self) -> list[RoleIdentity]:
        """All roles, highest level first. Empty is valid (no role will resolve)."""
        return list(self._ordered)

    def names(self) -> list[str]:
        return [r.name for r in self._ordered]

    def __len__(self) -> int:
        return len(self._ordered)

    def __contains__(self, identifier: object) -> bool:
        return isinstance(identifier, (str, RoleIdentity)) and self.exists(identifier)

    def exists(self, identifier: str | RoleIdentity) -> bool:
        return self.try_resolve(identifier) is not None

    def by_name(self, name: str) -> RoleIdentity:
        """Return role by plain name; raise RoleNotFoundException if unknown."""
        role = self._by_name.get(name)
        if role is None:
            raise RoleNotFoundException(name)
        return role

    def key_for(self, role: str | RoleIdentity) -> str:
        """Storage key for a role (name or identity); raise RoleNotFoundException if unknown."""
        resolved = self.resolve(role)
        return self._key_by_name[resolved.name]

    def resolve_key(self, key: str) -> RoleIdentity:
        """Resolve a stored role_key.

        Raises:
            InvalidRoleKeyException: key cannot be decoded (encrypted storage).
            RoleNotFoundException: key is valid but names no registered role.
        """
        name = self._name_by_key.get(key)
        if name is None:
            name = self._codec.resolve_name(key, self._by_name.keys())
        if name is None:
            raise RoleNotFoundException(key)
        return self._by_name[name]

    def by_key(self, key: str) -> RoleIdentity | None:
        """Speculative lookup for stored keys; None for retired roles or corrupt keys.

        Historical rows may reference roles that were removed from the
        catalogue, so this never raises.
        """
        try:
            return self.resolve_key(key)
        except RoleNotFoundException:
            return None
        except InvalidRoleKeyException:
            logger.warning(
                "Stored role key could not be decoded (key_storage=%s); treating as unknown",
                self._codec.storage.value,
            )
            return None

    def resolve(self, role: str | RoleIdentity) -> RoleIdentity:
        """Resolve a RoleIdentity, storage key, or plain name (key first, then name).

        Raises:
            RoleNotFoundException: nothing matches.
        """
        resolved = self.try_resolve(role)
        if resolved is None:
            raise RoleNotFoundException(role.name if isinstance(role, RoleIdentity) else role)
        return resolved

    def try_resolve(self, role: str | RoleIdentity) -> RoleIdentity | None:
        """Like resolve() but returns None instead of raising."""
        if isinstance(role, RoleIdentity):
            registered = self._by_name.get(role.name)
            return registered if registered is not None and registered.level == role.level else None
        if not isinstance(role, str) or not role:
            return None
        name = self._name_by_key.get(role)
        if name is not None:
            return self._by_name[name]
        return self._by_name.get(role)

    def resolve_row(self, row: Any) -> RoleIdentity | None:
        """Role of a roster row (anything with role_key); None if retired or corrupt."""
        return self.by_key(row.role_key)

    def lower_than(self, role: str | RoleIdentity) -> list[RoleIdentity]:
        ref = self.resolve(role)
        return [r for r in self._ordered if r.is_lower_than(ref)]

    def higher_than(self, role: str | RoleIdentity) -> list[RoleIdentity]:
        ref = self.resolve(role)
        return [r for r in self._ordered if r.is_higher_than(ref)]

    def lower_or_equal(self, role: str | RoleIdentity) -> list[RoleIdentity]:
        ref = self.resolve(role)
        return [r for r in self._ordered if r.is_lower_than_or_equal(ref)]

    def higher_or_equal(self, role: str | RoleIdentity) -> list[RoleIdentity]:
        ref = self.resolve(role)
        return [r for r in self._ordered if r.is_higher_than_or_equal(ref)]

    def as_choices(self, below_or_equal: str | RoleIdentity | None = None) -> list[dict[str, str]]:
        """[{value, label}] for role pickers, optionally limited to roles at or below a role."""
        roles = self.lower_or_equal(below_or_equal) if below_or_equal else self._ordered
        return [{"value": r.name, "label": r.label} for r in roles]


def build_role_registry(settings: Any) -> RoleRegistry:
    """Registry from settings.roles and the codec for settings.key_storage."""
    from porter.application.services.role_keys import build_key_codec

    return RoleRegistry(roles_from_definitions(settings.roles), build_key_codec(settings))

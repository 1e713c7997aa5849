"""RoleIdentity value object: a named role with a hierarchy level.

Immutable; defined at startup and compared purely by level. The storage
key is derived by the registry's key codec, not held here.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class RoleIdentity:
    """A role definition (name, level, label, description).

    Higher level means more privilege. Levels are unique within a registry,
    so level comparison gives a total order over registered roles.
    """

    name: str
    level: int
    label: str = ""
    description: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Role name must be a non-empty string")
        if self.level < 1:
            raise ValueError(f"Role level must be >= 1, got {self.level}")
        if not self.label:
            object.__setattr__(self, "label", self.name.replace("_", " ").title())

    def is_higher_than(self, other: "RoleIdentity") -> bool:
        return self.level > other.level

    def is_lower_than(self, other: "RoleIdentity") -> bool:
        return self.level < other.level

    def is_equal_to(self, other: "RoleIdentity") -> bool:
        return self.level == other.level

    def is_at_least(self, other: "RoleIdentity") -> bool:
        """True when this role is the same level as other or above it."""
        return self.level >= other.level

    def is_lower_than_or_equal(self, other: "RoleIdentity") -> bool:
        return self.level <= other.level

    def is_higher_than_or_equal(self, other: "RoleIdentity") -> bool:
        return self.level >= other.level

    def __str__(self) -> str:
        return self.name

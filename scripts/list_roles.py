"""Print the configured role catalogue, highest level first.

Usage:
    uv run python -m scripts.list_roles
Shows the storage key of each role under the current KEY_STORAGE, which
is the value written to the roster role_key column.
"""

import sys

from porter.application.services.role_registry import build_role_registry
from porter.core.config import get_settings
from porter.domain.exceptions import PorterException


def main() -> None:
    """List roles with level, label and storage key."""
    settings = get_settings()
    try:
        registry = build_role_registry(settings)
    except PorterException as e:
        print(f"Role catalogue invalid: {e.message}", file=sys.stderr)
        sys.exit(1)

    print(f"key_storage={settings.key_storage.value} roles={len(registry)}")
    for role in registry.all():
        print(f"{role.level:>3}  {role.name:<16} {role.label or '-':<16} {registry.key_for(role)}")


if __name__ == "__main__":
    main()

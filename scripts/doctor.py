"""Check Porter configuration and the roster table.

Usage:
    uv run python -m scripts.doctor
Verifies that the role catalogue loads, that the roster table and its
tenant column exist, and that every stored role_key still resolves to a
configured role. Exits 1 when any check fails.
"""

import asyncio
import sys

from sqlalchemy import inspect

from porter.application.services.role_registry import build_role_registry
from porter.core.config import get_settings
from porter.domain.exceptions import PorterException
from porter.infrastructure.persistence import database
from porter.infrastructure.persistence.repositories import RosterRepository

_REQUIRED_COLUMNS = (
    "assignable_type",
    "assignable_id",
    "roleable_type",
    "roleable_id",
    "role_key",
)


def _table_columns(sync_conn, table: str) -> set[str] | None:
    inspector = inspect(sync_conn)
    if not inspector.has_table(table):
        return None
    return {column["name"] for column in inspector.get_columns(table)}


async def main() -> None:
    """Run all checks and print one line per finding."""
    settings = get_settings()
    problems: list[str] = []

    try:
        registry = build_role_registry(settings)
    except PorterException as e:
        print(f"FAIL roles: {e.message}", file=sys.stderr)
        sys.exit(1)
    print(f"ok   roles: {len(registry)} configured ({', '.join(registry.names())})")

    database._ensure_engine()
    if database.engine is None or database.AsyncSessionLocal is None:
        print("FAIL database: DATABASE_URL is not set", file=sys.stderr)
        sys.exit(1)

    table = settings.roster_table
    async with database.engine.connect() as conn:
        columns = await conn.run_sync(_table_columns, table)
    if columns is None:
        print(f"FAIL table: {table!r} missing; run: alembic upgrade head", file=sys.stderr)
        await database.dispose_engine()
        sys.exit(1)
    expected = set(_REQUIRED_COLUMNS) | {settings.multitenancy_tenant_column}
    missing = sorted(expected - columns)
    if missing:
        problems.append(f"table: {table!r} lacks columns {missing}")
    else:
        print(f"ok   table: {table!r}")

    if not missing:
        async with database.AsyncSessionLocal() as session:
            counts = await RosterRepository(session).count_by_role_key()
        orphaned = {key: n for key, n in counts.items() if registry.by_key(key) is None}
        if orphaned:
            total = sum(orphaned.values())
            problems.append(
                f"bindings: {total} rows across {len(orphaned)} role keys do not resolve "
                f"(role removed or SECRET_KEY/KEY_STORAGE changed)"
            )
        else:
            print(f"ok   bindings: {sum(counts.values())} rows, all keys resolve")

    await database.dispose_engine()
    for problem in problems:
        print(f"FAIL {problem}", file=sys.stderr)
    if problems:
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())

"""Persistence: SQLAlchemy engine, roster model, repository, and Alembic migrations."""

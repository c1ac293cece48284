"""Dialect-aware INSERT ... ON CONFLICT builders.

PostgreSQL and SQLite share the on_conflict_do_update / on_conflict_do_nothing
API; pick the right construct from the session's bind.
"""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session


def dialect_insert(db: Session, model):
    """Return an Insert for `model` that supports ON CONFLICT clauses."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Upserts are not supported on {dialect}")

"""Practice service - practice row lookups, slug generation, and updates."""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from archibill.db.models import Practice, PracticeMember
from archibill.utils.normalization import random_suffix, slugify

logger = logging.getLogger(__name__)

SLUG_MAX_ATTEMPTS = 5
SLUG_SUFFIX_LENGTH = 4
SLUG_FALLBACK_SUFFIX_LENGTH = 12


def get_practice_by_id(db: Session, practice_id: UUID) -> Practice | None:
    """Get practice by ID."""
    return db.query(Practice).filter(Practice.id == practice_id).first()


def slug_exists(db: Session, slug: str) -> bool:
    return db.query(Practice.id).filter(Practice.slug == slug).first() is not None


def generate_unique_slug(db: Session, name: str) -> str:
    """
    Derive a slug from the name that no practice uses yet.

    Collisions get a short random suffix (growing by one character per
    attempt). After SLUG_MAX_ATTEMPTS the longer fallback suffix is returned
    without another lookup; the unique index still guards the insert.
    """
    base = slugify(name)
    candidate = base
    for attempt in range(SLUG_MAX_ATTEMPTS):
        if not slug_exists(db, candidate):
            return candidate
        candidate = f"{base}-{random_suffix(SLUG_SUFFIX_LENGTH + attempt)}"
    logger.warning("Slug retries exhausted for base %s, using long suffix", base)
    return f"{base}-{random_suffix(SLUG_FALLBACK_SUFFIX_LENGTH)}"


def create_practice(
    db: Session,
    name: str,
    slug: str,
    billing_email: str | None,
    currency: str,
    timezone_name: str,
) -> Practice:
    """
    Insert a practice row and flush so dependents can reference it.

    Raises:
        IntegrityError: If slug already exists
    """
    practice = Practice(
        name=name,
        slug=slug,
        billing_email=billing_email,
        currency=currency,
        timezone=timezone_name,
    )
    db.add(practice)
    db.flush()
    return practice


def update_practice(
    db: Session,
    practice: Practice,
    name: str,
    billing_email: str | None,
    currency: str,
    timezone_name: str,
) -> dict:
    """
    Apply profile fields and bump updated_at.

    Slug is not updateable to preserve URL stability.

    Returns:
        {field: {"old": ..., "new": ...}} for the fields that changed
    """
    changes = {}
    for field, value in (
        ("name", name),
        ("billing_email", billing_email),
        ("currency", currency),
        ("timezone", timezone_name),
    ):
        current = getattr(practice, field)
        if current != value:
            changes[field] = {"old": current, "new": value}
            setattr(practice, field, value)

    practice.updated_at = datetime.now(timezone.utc)
    db.flush()
    return changes


def get_practice_names(db: Session, practice_ids: list[UUID]) -> dict[UUID, str]:
    """Map practice id -> name for the given ids."""
    if not practice_ids:
        return {}
    rows = db.query(Practice.id, Practice.name).filter(Practice.id.in_(practice_ids)).all()
    return {row.id: row.name for row in rows}


def list_practices_with_member_counts(db: Session) -> list[tuple[Practice, int]]:
    """All practices (newest first) with their member counts."""
    member_count = func.count(PracticeMember.id)
    return (
        db.query(Practice, member_count)
        .outerjoin(PracticeMember, PracticeMember.practice_id == Practice.id)
        .group_by(Practice.id)
        .order_by(Practice.created_at.desc())
        .all()
    )

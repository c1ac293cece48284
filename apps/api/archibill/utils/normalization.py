"""Input normalization for practice, profile, and invite fields."""

import re
import secrets
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError


_EMAIL_ADAPTER = TypeAdapter(EmailStr)

SLUG_MAX_LENGTH = 50


def sanitize_input(value: Optional[str], max_length: int, *, lower: bool = False) -> str:
    """
    Trim and length-cap free text.

    Args:
        value: Raw input (None treated as empty)
        max_length: Characters kept after trimming
        lower: Lowercase the result

    Returns:
        Cleaned string, possibly empty
    """
    if not value:
        return ""
    limited = value.strip()[:max_length]
    return limited.lower() if lower else limited


def normalize_email(email: Optional[str]) -> Optional[str]:
    """
    Normalize email to lowercase.

    Args:
        email: Raw email input

    Returns:
        Lowercased email or None if empty
    """
    if not email:
        return None
    cleaned = email.strip().lower()
    return cleaned or None


def is_valid_email(email: Optional[str]) -> bool:
    """Syntax check via EmailStr (no DNS, no deliverability)."""
    if not email:
        return False
    try:
        _EMAIL_ADAPTER.validate_python(email)
    except PydanticValidationError:
        return False
    return True


def is_valid_timezone(name: str) -> bool:
    """Whether name is a known IANA timezone."""
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return False
    return True


def slugify(value: str) -> str:
    """
    URL-safe slug: lowercase, non-alphanumeric runs become hyphens.

    Falls back to practice-<random> when nothing usable remains.
    """
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")[:SLUG_MAX_LENGTH]
    slug = slug.strip("-")
    return slug or f"practice-{secrets.token_hex(4)}"


def random_suffix(length: int) -> str:
    """Lowercase hex of exactly `length` characters."""
    return secrets.token_hex((length + 1) // 2)[:length]

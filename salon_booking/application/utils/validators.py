from __future__ import annotations

import re

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

FULL_NAME_MIN_LENGTH = 10
FULL_NAME_MAX_LENGTH = 100


def is_valid_email(email: str | None) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email.strip()) is not None


def normalize_gender(gender: str | None) -> str | None:
    """Map free-form gender input to "male" | "female" | "other". None if empty."""
    if gender is None:
        return None
    value = gender.lower().strip()
    if not value:
        return None
    if value in ("male", "m"):
        return "male"
    if value in ("female", "f"):
        return "female"
    return "other"


def full_name_error(full_name: str | None) -> str | None:
    name = (full_name or "").strip()
    if not name:
        return "Full name is required"
    if len(name) < FULL_NAME_MIN_LENGTH:
        return f"Full name must be at least {FULL_NAME_MIN_LENGTH} characters"
    if len(name) > FULL_NAME_MAX_LENGTH:
        return f"Full name must be at most {FULL_NAME_MAX_LENGTH} characters"
    return None

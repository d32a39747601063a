"""Password hashing and account validation helpers for the academy portal."""

from __future__ import annotations

import re
from typing import Mapping

import bcrypt

from app import messages
from models import VALID_ROLES

MIN_PASSWORD_LENGTH = 6
EMAIL_REGEX = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def hash_password(plaintext: str) -> str:
    """Return a bcrypt hash for the provided password."""
    if not plaintext:
        raise ValueError("Password must be provided.")

    hashed = bcrypt.hashpw(plaintext.encode("utf-8"), bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(plaintext: str, password_hash: str) -> bool:
    """Verify that the supplied plaintext password matches a stored hash."""
    if not password_hash:
        return False

    try:
        return bcrypt.checkpw(plaintext.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        return False


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_REGEX.match(email or ""))


def validate_registration(form: Mapping[str, object]) -> tuple[dict[str, str], str | None]:
    """Return cleaned registration fields and the first error message, if any.

    Checks run in the order the form shows them: required fields, email
    shape, password length, confirmation, role.
    """
    cleaned = {
        "name": str(form.get("name", "") or "").strip(),
        "email": str(form.get("email", "") or "").strip(),
        "password": str(form.get("password", "") or ""),
        "confirm_password": str(form.get("confirm_password", "") or ""),
        "role": str(form.get("role", "student") or "student").strip().lower(),
    }

    if not cleaned["email"] or not cleaned["password"] or not cleaned["name"]:
        return cleaned, messages.MISSING_FIELDS
    if not is_valid_email(cleaned["email"]):
        return cleaned, messages.INVALID_EMAIL
    if len(cleaned["password"]) < MIN_PASSWORD_LENGTH:
        return cleaned, messages.PASSWORD_TOO_SHORT
    if cleaned["password"] != cleaned["confirm_password"]:
        return cleaned, messages.PASSWORD_MISMATCH
    if cleaned["role"] not in VALID_ROLES:
        return cleaned, messages.INVALID_ROLE
    return cleaned, None

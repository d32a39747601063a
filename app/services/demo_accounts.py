from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from config.settings import get_settings
from models import VALID_ROLES

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DemoAccount:
    email: str
    password: str
    role: str
    name: Optional[str] = None


FALLBACK_DEMO_ACCOUNTS = (
    DemoAccount(email="student@demo.com", password="password123", role="student"),
    DemoAccount(email="teacher@demo.com", password="password123", role="teacher"),
    DemoAccount(email="admin@demo.com", password="password123", role="admin"),
)


def to_demo_account(item: object) -> Optional[DemoAccount]:
    """Return a DemoAccount for a well-formed entry, otherwise None."""
    if not isinstance(item, dict):
        return None

    role = item.get("role")
    email = item.get("email")
    password = item.get("password")
    name = item.get("name")

    if role not in VALID_ROLES:
        return None
    if not isinstance(email, str) or not isinstance(password, str):
        return None

    trimmed_name = name.strip() if isinstance(name, str) else ""
    return DemoAccount(
        email=email,
        password=password,
        role=role,
        name=trimmed_name or None,
    )


def parse_demo_accounts(raw: object) -> list[DemoAccount]:
    """Accept either a list of entries or an object keyed by id."""
    if isinstance(raw, list):
        items = raw
    elif isinstance(raw, dict):
        items = list(raw.values())
    else:
        return []
    return [account for account in (to_demo_account(item) for item in items) if account]


def load_demo_accounts(path: Optional[str] = None) -> list[DemoAccount]:
    """Load demo accounts from ``path`` or ``DEMO_ACCOUNTS_PATH``.

    Without a configured document the fallback accounts are returned; a
    document that cannot be read yields an empty list.
    """
    path_value = path or get_settings().DEMO_ACCOUNTS_PATH
    if not path_value:
        return list(FALLBACK_DEMO_ACCOUNTS)

    source = Path(path_value)
    try:
        raw = json.loads(source.read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.warning("Demo accounts file %s does not exist.", source)
        return []
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Failed to fetch demo accounts from %s: %s", source, exc)
        return []
    return parse_demo_accounts(raw)

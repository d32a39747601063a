#!/usr/bin/env python3
"""Create the demo accounts listed on the login page.

Existing accounts are left untouched, so the script can be re-run safely.
"""

import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.security import hash_password  # noqa: E402
from app.services.demo_accounts import load_demo_accounts  # noqa: E402
from models import create_user, get_user_by_email, init_db  # noqa: E402

logger = logging.getLogger("seed_demo_accounts")


def seed() -> int:
    init_db()
    created = 0
    for account in load_demo_accounts():
        if get_user_by_email(account.email) is not None:
            logger.info("Skipping existing account %s", account.email)
            continue
        create_user(
            name=account.name or account.email.split("@", 1)[0],
            email=account.email,
            password_hash=hash_password(account.password),
            role=account.role,
        )
        created += 1
        logger.info("Created %s account %s", account.role, account.email)
    return created


if __name__ == "__main__":
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    count = seed()
    print(f"✅ Created {count} demo account(s)")
